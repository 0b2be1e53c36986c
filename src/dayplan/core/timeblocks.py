"""Pure time block lifecycle logic - no I/O dependencies.

A time block is either a plan (task_plan / manual_entry), a record of
what actually happened (time_log / pomodoro_log), or a system-managed
fixed break that sits outside the plan/log duality.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum


class SourceType(Enum):
    FIXED_BREAK = "fixed_break"
    TASK_PLAN = "task_plan"
    MANUAL_ENTRY = "manual_entry"
    TIME_LOG = "time_log"
    POMODORO_LOG = "pomodoro_log"


class BlockState(Enum):
    PLANNED = "planned"
    LOGGED = "logged"
    FIXED_BREAK = "fixed_break"


LOGGED_SOURCES = frozenset({SourceType.TIME_LOG, SourceType.POMODORO_LOG})


class TimeBlockError(ValueError):
    """Raised when a time block is constructed in an inconsistent state."""

    pass


class FixedBreakError(Exception):
    """Raised when a fixed break is edited, logged or deleted through the normal path."""

    pass


class InvalidTransitionError(Exception):
    """Raised when a lifecycle transition does not apply to the block's state."""

    pass


def _minutes_between(start: datetime | None, end: datetime | None) -> int | None:
    """Whole minutes from start to end, or None if unknown or non-positive."""
    if start is None or end is None:
        return None
    minutes = int((end - start).total_seconds() / 60)
    return minutes if minutes > 0 else None


@dataclass
class TimeBlock:
    """A scheduled or recorded interval on the timeline."""

    title: str
    source_type: SourceType
    is_logged: bool = False
    start_time: datetime | None = None
    end_time: datetime | None = None
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    activity_category_id: int | None = None
    task_id: int | None = None
    duration_minutes: int | None = None
    notes: str = ""
    fixed_break_id: str | None = None
    id: int | None = None

    def __post_init__(self):
        try:
            self.source_type = SourceType(self.source_type)
        except ValueError:
            raise TimeBlockError(f"Unknown source type: {self.source_type!r}") from None

        has_plan = self.start_time is not None and self.end_time is not None
        has_actual = self.actual_start_time is not None and self.actual_end_time is not None
        if not has_plan and not has_actual:
            raise TimeBlockError(f"Time block {self.title!r} has neither planned nor actual times")

        if self.is_logged:
            if self.source_type not in LOGGED_SOURCES:
                raise TimeBlockError(f"A logged block cannot have source type {self.source_type.value}")
        else:
            if self.source_type in LOGGED_SOURCES:
                raise TimeBlockError(f"Source type {self.source_type.value} requires is_logged")
            if self.actual_start_time is not None or self.actual_end_time is not None:
                raise TimeBlockError("Only logged blocks carry actual times")

    @property
    def state(self) -> BlockState:
        if self.source_type is SourceType.FIXED_BREAK:
            return BlockState.FIXED_BREAK
        return BlockState.LOGGED if self.is_logged else BlockState.PLANNED

    @property
    def is_fixed_break(self) -> bool:
        return self.source_type is SourceType.FIXED_BREAK

    def interval(self) -> tuple[datetime, datetime]:
        """The authoritative (start, end) pair for this block's state."""
        if self.is_logged and self.actual_start_time and self.actual_end_time:
            return self.actual_start_time, self.actual_end_time
        if self.start_time and self.end_time:
            return self.start_time, self.end_time
        return self.actual_start_time, self.actual_end_time

    def duration(self) -> int | None:
        """
        Duration in minutes, or None when unknown.

        Logged blocks prefer their cached duration, which is the only
        source of truth for aggregate entries without actual times.
        """
        if self.is_logged and self.duration_minutes and self.duration_minutes > 0:
            return self.duration_minutes
        start, end = self.interval()
        return _minutes_between(start, end)

    def local_date(self, tz: tzinfo | None = None) -> date:
        """The day this block falls on, in `tz` when given."""
        start, _ = self.interval()
        return (start.astimezone(tz) if tz else start).date()

    def format_time(self) -> str:
        start, end = self.interval()
        return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"

    @classmethod
    def plan(
        cls,
        title: str,
        start: datetime,
        end: datetime,
        task_id: int | None = None,
        activity_category_id: int | None = None,
        notes: str = "",
    ) -> "TimeBlock":
        """Create a planned block; linked to a task it becomes a task_plan."""
        return cls(
            title=title,
            source_type=SourceType.TASK_PLAN if task_id is not None else SourceType.MANUAL_ENTRY,
            start_time=start,
            end_time=end,
            task_id=task_id,
            activity_category_id=activity_category_id,
            notes=notes,
            duration_minutes=_minutes_between(start, end),
        )

    @classmethod
    def fixed_break(cls, title: str, start: datetime, end: datetime, fixed_break_id: str) -> "TimeBlock":
        return cls(
            title=title,
            source_type=SourceType.FIXED_BREAK,
            start_time=start,
            end_time=end,
            fixed_break_id=fixed_break_id,
            duration_minutes=_minutes_between(start, end),
        )

    # ============== Record mapping ==============

    def to_record(self, tz: tzinfo | None = None) -> dict:
        """Map to a store record. `date` is the local day of the block's interval."""
        record = {
            "title": self.title,
            "sourceType": self.source_type.value,
            "isLogged": 1 if self.is_logged else 0,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "actualStartTime": _iso(self.actual_start_time),
            "actualEndTime": _iso(self.actual_end_time),
            "activityCategoryId": self.activity_category_id,
            "taskId": self.task_id,
            "durationMinutes": self.duration_minutes,
            "notes": self.notes,
            "fixedBreakId": self.fixed_break_id,
            "date": self.local_date(tz).isoformat(),
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: dict, tz: tzinfo | None = None) -> "TimeBlock":
        """Build from a store record. Raises TimeBlockError on bad data."""
        try:
            return cls(
                title=record.get("title", ""),
                source_type=record["sourceType"],
                is_logged=bool(record.get("isLogged", 0)),
                start_time=_parse(record.get("startTime"), tz),
                end_time=_parse(record.get("endTime"), tz),
                actual_start_time=_parse(record.get("actualStartTime"), tz),
                actual_end_time=_parse(record.get("actualEndTime"), tz),
                activity_category_id=record.get("activityCategoryId"),
                task_id=record.get("taskId"),
                duration_minutes=record.get("durationMinutes"),
                notes=record.get("notes") or "",
                fixed_break_id=record.get("fixedBreakId"),
                id=record.get("id"),
            )
        except (KeyError, TypeError) as e:
            raise TimeBlockError(f"Malformed time block record: {e}") from e


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _parse(value: str | None, tz: tzinfo | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError as e:
        raise TimeBlockError(f"Bad timestamp {value!r}") from e
    return dt.astimezone(tz) if tz and dt.tzinfo else dt


# ============== Lifecycle ==============


def convert_to_log(
    block: TimeBlock,
    actual_start: datetime | None = None,
    actual_end: datetime | None = None,
    from_pomodoro: bool = False,
) -> TimeBlock:
    """
    Turn a planned block into a logged one.

    The result keeps the block's identity, title, task and category links
    and its planned interval; actual times default to the plan. The input
    block is left untouched.
    """
    if block.is_fixed_break:
        raise FixedBreakError(f"Fixed break {block.title!r} cannot be logged")
    if block.is_logged:
        raise InvalidTransitionError(f"Block {block.title!r} is already logged")

    actual_start = actual_start or block.start_time
    actual_end = actual_end or block.end_time
    if actual_start is None or actual_end is None:
        raise InvalidTransitionError(f"Block {block.title!r} has no interval to log")

    return replace(
        block,
        is_logged=True,
        source_type=SourceType.POMODORO_LOG if from_pomodoro else SourceType.TIME_LOG,
        actual_start_time=actual_start,
        actual_end_time=actual_end,
        duration_minutes=_minutes_between(actual_start, actual_end),
    )


def ensure_deletable(block: TimeBlock) -> None:
    """Reject deletion of system-managed fixed breaks."""
    if block.is_fixed_break:
        raise FixedBreakError(f"Fixed break {block.title!r} is managed by its break rule")


def plan_occurrences(
    occurrences: list[datetime],
    title: str,
    duration_minutes: int,
    task_id: int | None = None,
    activity_category_id: int | None = None,
) -> list[TimeBlock]:
    """Materialize one planned block per occurrence, each starting at the occurrence."""
    if duration_minutes <= 0:
        raise TimeBlockError(f"duration_minutes must be positive, got {duration_minutes}")
    length = timedelta(minutes=duration_minutes)
    return [
        TimeBlock.plan(
            title=title,
            start=occurrence,
            end=occurrence + length,
            task_id=task_id,
            activity_category_id=activity_category_id,
        )
        for occurrence in occurrences
    ]
