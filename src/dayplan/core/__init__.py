"""Functional core - pure business logic with no I/O."""

from .intervals import TimeSlot, overlaps
from .recurrence import (
    EndsType,
    Frequency,
    RecurrenceRule,
    RecurrenceRuleError,
    describe,
    deserialize,
    generate_future_occurrences,
    is_finished,
    next_occurrence,
    serialize,
)
from .timeblocks import (
    BlockState,
    FixedBreakError,
    InvalidTransitionError,
    SourceType,
    TimeBlock,
    TimeBlockError,
    convert_to_log,
    ensure_deletable,
    plan_occurrences,
)
from .scheduling import FixedBreakRule, breaks_for_day, find_conflicts, find_next_slot

__all__ = [
    # Intervals
    "TimeSlot",
    "overlaps",
    # Recurrence
    "EndsType",
    "Frequency",
    "RecurrenceRule",
    "RecurrenceRuleError",
    "describe",
    "deserialize",
    "generate_future_occurrences",
    "is_finished",
    "next_occurrence",
    "serialize",
    # Time blocks
    "BlockState",
    "FixedBreakError",
    "InvalidTransitionError",
    "SourceType",
    "TimeBlock",
    "TimeBlockError",
    "convert_to_log",
    "ensure_deletable",
    "plan_occurrences",
    # Scheduling
    "FixedBreakRule",
    "breaks_for_day",
    "find_conflicts",
    "find_next_slot",
]
