"""Pure interval arithmetic - no I/O dependencies."""

from dataclasses import dataclass
from datetime import datetime, timedelta


def overlaps(
    start1: datetime,
    end1: datetime,
    start2: datetime,
    end2: datetime,
    min_gap_minutes: int = 0,
) -> bool:
    """
    Check whether two half-open ranges conflict.

    With a gap, each range must stay `min_gap_minutes` clear of the other,
    so back-to-back ranges conflict once the gap is positive. Zero-length
    ranges never overlap anything unless a gap bridges them.

    Pure function - no I/O.
    """
    if min_gap_minutes < 0:
        raise ValueError(f"min_gap_minutes must be >= 0, got {min_gap_minutes}")

    gap = timedelta(minutes=min_gap_minutes)
    if not gap and (start1 == end1 or start2 == end2):
        return False
    return start1 < end2 + gap and start2 - gap < end1


@dataclass
class TimeSlot:
    """A half-open span of time, free or busy."""

    start: datetime
    end: datetime

    def overlaps(self, other: "TimeSlot", min_gap_minutes: int = 0) -> bool:
        """Check if this slot overlaps with another."""
        return overlaps(self.start, self.end, other.start, other.end, min_gap_minutes)
