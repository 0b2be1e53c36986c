"""Pure timeline scheduling logic - no I/O dependencies."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo

from .intervals import TimeSlot, overlaps
from .timeblocks import TimeBlock

logger = logging.getLogger(__name__)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DEFAULT_BREAK_TITLE = "Fixed break"


def parse_clock(value: str) -> time:
    """Parse an 'HH:MM' string."""
    hour, _, minute = value.strip().partition(":")
    return time(int(hour), int(minute or 0))


def sort_blocks(blocks: list[TimeBlock]) -> list[TimeBlock]:
    """Sort blocks by the start of their authoritative interval."""
    return sorted(blocks, key=lambda b: b.interval()[0])


def find_conflicts(blocks: list[TimeBlock], min_gap_minutes: int = 0) -> list[tuple[TimeBlock, TimeBlock]]:
    """
    Find conflicting blocks.

    Returns list of (block1, block2) tuples that conflict.
    Pure function - no I/O.
    """
    conflicts = []
    gap = timedelta(minutes=min_gap_minutes)
    sorted_blocks = sort_blocks(blocks)

    for i, b1 in enumerate(sorted_blocks):
        start1, end1 = b1.interval()
        for b2 in sorted_blocks[i + 1 :]:
            start2, end2 = b2.interval()
            # b2 starts after b1 ends (plus gap) - no more conflicts possible
            if start2 >= end1 + gap:
                break
            if overlaps(start1, end1, start2, end2, min_gap_minutes):
                conflicts.append((b1, b2))

    return conflicts


def block_minutes_for_task(
    estimated_pomodoros: int | None,
    work_duration: int = 25,
    default_minutes: int = 60,
) -> int:
    """Planned length of a task: its pomodoro estimate, else the default block length."""
    if estimated_pomodoros and estimated_pomodoros > 0:
        return estimated_pomodoros * work_duration
    return default_minutes


def _round_up(dt: datetime, step_minutes: int) -> datetime:
    """Round up to the next whole minute that is a multiple of step_minutes."""
    rounded = dt.replace(second=0, microsecond=0)
    if rounded < dt:
        rounded += timedelta(minutes=1)
    remainder = rounded.minute % step_minutes
    if remainder:
        rounded += timedelta(minutes=step_minutes - remainder)
    return rounded


def find_next_slot(
    blocks: list[TimeBlock],
    duration_minutes: int,
    now: datetime,
    workday_start: time = time(9, 0),
    day_end: time = time(22, 0),
    min_gap_minutes: int = 5,
    step_minutes: int = 5,
) -> TimeSlot | None:
    """
    Find the earliest free slot on `now`'s day.

    The slot starts no earlier than now or the start of the workday,
    keeps `min_gap_minutes` clear of every existing block and must end by
    `day_end`. Pure function - no I/O.

    Returns:
        The slot, or None if the rest of the day is full
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

    tz = now.tzinfo
    day = now.date()
    limit = datetime.combine(day, day_end, tzinfo=tz)
    length = timedelta(minutes=duration_minutes)
    gap = timedelta(minutes=min_gap_minutes)
    busy = sorted((TimeSlot(*b.interval()) for b in blocks), key=lambda s: s.start)

    candidate = _round_up(max(now, datetime.combine(day, workday_start, tzinfo=tz)), step_minutes)
    while candidate + length <= limit:
        slot = TimeSlot(start=candidate, end=candidate + length)
        clash = next((b.end for b in busy if slot.overlaps(b, min_gap_minutes)), None)
        if clash is None:
            return slot
        candidate = _round_up(clash + gap, step_minutes)

    return None


@dataclass
class FixedBreakRule:
    """A recurring daily break configured in settings."""

    id: int | str
    start: str
    end: str
    label: str = ""
    days_of_week: list[str] = field(default_factory=lambda: list(WEEKDAYS[:5]))
    is_enabled: bool = True

    def applies_to(self, day: date) -> bool:
        return self.is_enabled and WEEKDAYS[day.weekday()] in {d.lower() for d in self.days_of_week}

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "startTime": self.start,
            "endTime": self.end,
            "daysOfWeek": list(self.days_of_week),
            "isEnabled": self.is_enabled,
        }

    @classmethod
    def from_record(cls, data: dict) -> "FixedBreakRule":
        return cls(
            id=data["id"],
            start=data["startTime"],
            end=data["endTime"],
            label=data.get("label", ""),
            days_of_week=data.get("daysOfWeek", []),
            is_enabled=bool(data.get("isEnabled", True)),
        )


def breaks_for_day(
    rules: list[FixedBreakRule],
    day: date,
    existing: list[TimeBlock],
    tz: tzinfo | None = None,
) -> list[TimeBlock]:
    """
    Fixed-break blocks that still need to be created for a day.

    Rules already materialized in `existing` are skipped, as are rules
    whose end is not after their start.
    """
    materialized = {b.fixed_break_id for b in existing if b.is_fixed_break}
    new_blocks = []

    for rule in rules:
        rule_id = str(rule.id)
        if not rule.applies_to(day) or rule_id in materialized:
            continue
        try:
            start = datetime.combine(day, parse_clock(rule.start), tzinfo=tz)
            end = datetime.combine(day, parse_clock(rule.end), tzinfo=tz)
        except ValueError as e:
            logger.warning(f"Skipping fixed break rule {rule_id} with bad time: {e}")
            continue
        if end <= start:
            logger.warning(f"Skipping fixed break rule {rule_id} ({rule.label}): end is not after start")
            continue

        new_blocks.append(TimeBlock.fixed_break(rule.label or DEFAULT_BREAK_TITLE, start, end, rule_id))
        materialized.add(rule_id)

    return new_blocks


def orphaned_breaks(blocks: list[TimeBlock], rules: list[FixedBreakRule]) -> list[TimeBlock]:
    """Fixed breaks whose rule has been deleted."""
    rule_ids = {str(r.id) for r in rules}
    return [b for b in blocks if b.is_fixed_break and b.fixed_break_id not in rule_ids]
