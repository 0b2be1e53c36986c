"""Shared workflow layer between the CLI and the functional core.

Each function reads what it needs from a RecordStore, runs pure core
logic, and writes the result back. The store offers no transactions, so
operations that write more than once report partial completion instead
of rolling back.
"""

import logging
from datetime import date, datetime, tzinfo

from .adapters.http_store import HttpRecordStore
from .adapters.json_store import JsonFileRecordStore
from .config import Config
from .core.recurrence import RecurrenceRule, deserialize, generate_future_occurrences
from .core.scheduling import (
    FixedBreakRule,
    block_minutes_for_task,
    breaks_for_day,
    find_conflicts,
    find_next_slot,
    orphaned_breaks,
    sort_blocks,
)
from .core.timeblocks import (
    TimeBlock,
    TimeBlockError,
    convert_to_log,
    ensure_deletable,
    plan_occurrences,
)
from .ports.record_store import FIXED_BREAK_RULES, TASKS, TIME_BLOCKS, RecordStore, StoreError

logger = logging.getLogger(__name__)


class BlockNotFoundError(LookupError):
    """Raised when a time block or task id does not exist in the store."""

    pass


class PartialTransitionError(Exception):
    """
    Raised when a multi-write operation fails part-way.

    `completed` lists the ids written (or removed) before the failing call,
    so the caller can retry the rest or reconcile.
    """

    def __init__(self, message: str, completed: list[int], cause: StoreError):
        super().__init__(message)
        self.completed = completed
        self.cause = cause


def get_store(config: Config) -> RecordStore:
    """Build the record store configured in dayplan.conf."""
    if config.store_backend == "http":
        return HttpRecordStore(config)
    if config.store_backend != "json":
        raise StoreError(f"Unknown STORE_BACKEND: {config.store_backend!r}")
    return JsonFileRecordStore(config.data_path)


# ============== Tasks and recurrence ==============


def get_task(store: RecordStore, task_id: int) -> dict:
    task = store.get(TASKS, task_id)
    if task is None:
        raise BlockNotFoundError(f"No task with id {task_id}")
    return task


def load_task_recurrence(task: dict, tz: tzinfo | None = None) -> RecurrenceRule | None:
    """The task's recurrence rule, or None if it has none or it is corrupt."""
    raw = task.get("recurrenceRule")
    if not raw:
        return None
    rule = deserialize(raw, tz)
    if rule is None:
        logger.warning(f"Task {task.get('id')} has a corrupt recurrence rule; treating it as one-off")
    return rule


def _add_all(store: RecordStore, blocks: list[TimeBlock], tz: tzinfo) -> list[TimeBlock]:
    """Persist blocks one by one, reporting partial completion."""
    saved: list[TimeBlock] = []
    for block in blocks:
        try:
            block.id = store.add(TIME_BLOCKS, block.to_record(tz))
        except StoreError as e:
            raise PartialTransitionError(
                f"Saved {len(saved)} of {len(blocks)} blocks before the store failed: {e}",
                completed=[b.id for b in saved],
                cause=e,
            ) from e
        saved.append(block)
    return saved


def plan_recurring_task(
    store: RecordStore,
    task: dict,
    rule: RecurrenceRule,
    count: int,
    now: datetime,
    config: Config,
    occurrence_count: int = 0,
) -> list[TimeBlock]:
    """
    Materialize the next occurrences of a recurring task as planned blocks.

    Args:
        task: Task record (id, title, estimatedPomodoros)
        rule: The task's recurrence rule
        count: Maximum number of occurrences to plan
        now: Caller's current time
        occurrence_count: Occurrences already planned in earlier runs
    """
    occurrences = generate_future_occurrences(rule, count, now, occurrence_count)
    minutes = block_minutes_for_task(
        task.get("estimatedPomodoros"),
        config.pomodoro.work_duration,
        config.default_block_minutes,
    )
    blocks = plan_occurrences(
        occurrences,
        title=task.get("title", ""),
        duration_minutes=minutes,
        task_id=task.get("id"),
        activity_category_id=task.get("activityCategoryId"),
    )
    saved = _add_all(store, blocks, config.zone)
    logger.info(f"Planned {len(saved)} occurrence(s) of task {task.get('id')}")
    return saved


def schedule_task(store: RecordStore, task: dict, now: datetime, config: Config) -> TimeBlock | None:
    """Put a task into the next free slot today. Returns None if the day is full."""
    minutes = block_minutes_for_task(
        task.get("estimatedPomodoros"),
        config.pomodoro.work_duration,
        config.default_block_minutes,
    )
    slot = find_next_slot(
        day_blocks(store, now.date(), config.zone),
        minutes,
        now,
        workday_start=config.workday_start_time,
        day_end=config.day_end_time,
        min_gap_minutes=config.min_gap_minutes,
        step_minutes=config.slot_step_minutes,
    )
    if slot is None:
        logger.info(f"No free {minutes} min slot left today for task {task.get('id')}")
        return None

    block = TimeBlock.plan(
        title=task.get("title", ""),
        start=slot.start,
        end=slot.end,
        task_id=task.get("id"),
        activity_category_id=task.get("activityCategoryId"),
    )
    block.id = store.add(TIME_BLOCKS, block.to_record(config.zone))
    return block


# ============== Time blocks ==============


def get_block(store: RecordStore, block_id: int, tz: tzinfo | None = None) -> TimeBlock:
    record = store.get(TIME_BLOCKS, block_id)
    if record is None:
        raise BlockNotFoundError(f"No time block with id {block_id}")
    return TimeBlock.from_record(record, tz)


def _load_blocks(store: RecordStore, tz: tzinfo | None) -> list[TimeBlock]:
    blocks = []
    for record in store.get_all(TIME_BLOCKS):
        try:
            blocks.append(TimeBlock.from_record(record, tz))
        except TimeBlockError as e:
            logger.warning(f"Skipping time block {record.get('id')}: {e}")
    return blocks


def day_blocks(store: RecordStore, day: date, tz: tzinfo | None = None) -> list[TimeBlock]:
    """All blocks on a local day, sorted by start."""
    return sort_blocks([b for b in _load_blocks(store, tz) if b.local_date(tz) == day])


def day_conflicts(
    store: RecordStore,
    day: date,
    config: Config,
    min_gap_minutes: int = 0,
) -> list[tuple[TimeBlock, TimeBlock]]:
    return find_conflicts(day_blocks(store, day, config.zone), min_gap_minutes)


def log_block(
    store: RecordStore,
    block_id: int,
    actual_start: datetime | None = None,
    actual_end: datetime | None = None,
    from_pomodoro: bool = False,
    tz: tzinfo | None = None,
) -> TimeBlock:
    """Convert a planned block into a logged one, keeping its id."""
    block = get_block(store, block_id, tz)
    logged = convert_to_log(block, actual_start, actual_end, from_pomodoro)
    store.update(TIME_BLOCKS, logged.to_record(tz))
    logger.info(f"Logged block {block_id} ({logged.source_type.value}, {logged.duration()} min)")
    return logged


def delete_block(store: RecordStore, block_id: int, tz: tzinfo | None = None) -> None:
    """Delete a planned or logged block. Fixed breaks are rejected."""
    block = get_block(store, block_id, tz)
    ensure_deletable(block)
    store.remove(TIME_BLOCKS, block_id)


def load_break_rules(store: RecordStore) -> list[FixedBreakRule]:
    rules = []
    for record in store.get_all(FIXED_BREAK_RULES):
        try:
            rules.append(FixedBreakRule.from_record(record))
        except KeyError as e:
            logger.warning(f"Skipping fixed break rule {record.get('id')}: missing {e}")
    return rules


def sync_fixed_breaks(store: RecordStore, day: date, config: Config) -> tuple[list[TimeBlock], list[TimeBlock]]:
    """
    Bring a day's fixed breaks in line with the configured break rules.

    Returns:
        (added, removed) blocks
    """
    tz = config.zone
    rules = load_break_rules(store)
    existing = day_blocks(store, day, tz)

    added = _add_all(store, breaks_for_day(rules, day, existing, tz), tz)

    removed: list[TimeBlock] = []
    for block in orphaned_breaks(existing, rules):
        try:
            store.remove(TIME_BLOCKS, block.id)
        except StoreError as e:
            raise PartialTransitionError(
                f"Removed {len(removed)} orphaned break(s) before the store failed: {e}",
                completed=[b.id for b in added + removed],
                cause=e,
            ) from e
        removed.append(block)

    if added or removed:
        logger.info(f"Fixed breaks for {day}: {len(added)} added, {len(removed)} removed")
    return added, removed
