"""Pure recurrence domain logic - no I/O dependencies.

A RecurrenceRule anchors to a start instant and repeats by a fixed
frequency until its end condition is met. All arithmetic is done on the
wall clock of the rule's own time zone, so a 09:00 daily rule stays at
09:00 across DST changes.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class Frequency(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    WORKDAYS = "workdays"


class EndsType(Enum):
    NEVER = "never"
    ON_DATE = "on_date"
    AFTER_OCCURRENCES = "after_occurrences"


class RecurrenceRuleError(ValueError):
    """Raised when a recurrence rule is constructed with inconsistent fields."""

    pass


@dataclass(frozen=True)
class RecurrenceRule:
    """A repetition specification anchored to `start_date`."""

    frequency: Frequency
    start_date: datetime
    ends_type: EndsType = EndsType.NEVER
    end_date: datetime | None = None
    occurrences: int | None = None
    day_of_week: int | None = None  # 0-6, Sunday = 0

    def __post_init__(self):
        try:
            object.__setattr__(self, "frequency", Frequency(self.frequency))
        except ValueError:
            raise RecurrenceRuleError(f"Unknown frequency: {self.frequency!r}") from None
        try:
            object.__setattr__(self, "ends_type", EndsType(self.ends_type))
        except ValueError:
            raise RecurrenceRuleError(f"Unknown ends type: {self.ends_type!r}") from None

        _require_aware("start_date", self.start_date)

        match self.ends_type:
            case EndsType.NEVER:
                if self.end_date is not None or self.occurrences is not None:
                    raise RecurrenceRuleError("A rule that never ends takes no end_date or occurrences")
            case EndsType.ON_DATE:
                if self.end_date is None:
                    raise RecurrenceRuleError("ends_type 'on_date' requires end_date")
                if self.occurrences is not None:
                    raise RecurrenceRuleError("ends_type 'on_date' takes no occurrences")
                _require_aware("end_date", self.end_date)
                if self.end_date < self.start_date:
                    raise RecurrenceRuleError(
                        f"end_date {self.end_date.isoformat()} precedes start_date {self.start_date.isoformat()}"
                    )
            case EndsType.AFTER_OCCURRENCES:
                if self.end_date is not None:
                    raise RecurrenceRuleError("ends_type 'after_occurrences' takes no end_date")
                if (
                    not isinstance(self.occurrences, int)
                    or isinstance(self.occurrences, bool)
                    or self.occurrences < 1
                ):
                    raise RecurrenceRuleError(
                        f"ends_type 'after_occurrences' requires a positive occurrences count, got {self.occurrences!r}"
                    )

        if self.day_of_week is not None and (
            not isinstance(self.day_of_week, int)
            or isinstance(self.day_of_week, bool)
            or not 0 <= self.day_of_week <= 6
        ):
            raise RecurrenceRuleError(f"day_of_week must be 0-6, got {self.day_of_week!r}")


def _require_aware(name: str, value: object) -> None:
    if not isinstance(value, datetime):
        raise RecurrenceRuleError(f"{name} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise RecurrenceRuleError(f"{name} must be timezone-aware")


# ============== Serialization ==============


def _format_instant(dt: datetime) -> str:
    """ISO-8601 UTC instant with a Z suffix."""
    timespec = "milliseconds" if dt.microsecond % 1000 == 0 else "microseconds"
    return dt.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def _parse_instant(value: str, tz: tzinfo | None) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz) if tz else dt


def serialize(rule: RecurrenceRule) -> str:
    """Serialize a rule to its JSON storage form."""
    payload: dict[str, object] = {
        "frequency": rule.frequency.value,
        "startDate": _format_instant(rule.start_date),
        "endsType": rule.ends_type.value,
    }
    if rule.end_date is not None:
        payload["endDate"] = _format_instant(rule.end_date)
    if rule.occurrences is not None:
        payload["occurrences"] = rule.occurrences
    if rule.day_of_week is not None:
        payload["dayOfWeek"] = rule.day_of_week
    return json.dumps(payload, sort_keys=True)


def deserialize(text: str | None, tz: tzinfo | None = None) -> RecurrenceRule | None:
    """
    Parse a stored rule. Returns None instead of raising on bad input.

    Args:
        text: JSON produced by `serialize`
        tz: Zone to convert instants into (defaults to UTC as stored)
    """
    if not text:
        return None
    try:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        end_date = data.get("endDate")
        return RecurrenceRule(
            frequency=data["frequency"],
            start_date=_parse_instant(data["startDate"], tz),
            ends_type=data.get("endsType", EndsType.NEVER.value),
            end_date=_parse_instant(end_date, tz) if end_date else None,
            occurrences=data.get("occurrences"),
            day_of_week=data.get("dayOfWeek"),
        )
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Ignoring malformed recurrence rule: {e}")
        return None


# ============== Engine ==============


def _is_weekend(dt: datetime) -> bool:
    return dt.weekday() >= 5


def next_occurrence(from_date: datetime, rule: RecurrenceRule) -> datetime | None:
    """
    Advance one period from `from_date`.

    Months and years clamp to the last valid day of the target month,
    so Jan 31 -> Feb 28/29 and Feb 29 -> Feb 28.
    """
    match rule.frequency:
        case Frequency.DAILY:
            return from_date + relativedelta(days=1)
        case Frequency.WEEKLY:
            return from_date + relativedelta(weeks=1)
        case Frequency.MONTHLY:
            return from_date + relativedelta(months=1)
        case Frequency.YEARLY:
            return from_date + relativedelta(years=1)
        case Frequency.WORKDAYS:
            candidate = from_date + relativedelta(days=1)
            while _is_weekend(candidate):
                candidate += relativedelta(days=1)
            return candidate
        case _:
            return None


def is_finished(rule: RecurrenceRule, current_date: datetime, occurrence_count: int = 0) -> bool:
    """
    Check whether `current_date` falls past the rule's end condition.

    The engine keeps no counters: for 'after_occurrences' rules the caller
    passes how many occurrences have already been materialized.
    """
    match rule.ends_type:
        case EndsType.ON_DATE:
            return current_date > rule.end_date
        case EndsType.AFTER_OCCURRENCES:
            return occurrence_count >= rule.occurrences
        case _:
            return False


def generate_future_occurrences(
    rule: RecurrenceRule,
    count: int,
    start_from: datetime,
    occurrence_count: int = 0,
) -> list[datetime]:
    """
    List up to `count` occurrences beginning at max(rule start, `start_from`).

    Pure function - no I/O. Calling it again with the same arguments
    returns the same dates.

    Args:
        rule: The recurrence rule
        count: Maximum number of dates to return
        start_from: The caller's "now"; generation begins at the later of this and the rule's start
        occurrence_count: Occurrences already materialized before this call

    Returns:
        Ordered occurrence datetimes, possibly empty
    """
    if count <= 0:
        return []

    current = max(rule.start_date, start_from.astimezone(rule.start_date.tzinfo))
    if rule.frequency is Frequency.WORKDAYS and _is_weekend(current):
        current = next_occurrence(current, rule)

    occurrences: list[datetime] = []
    emitted = occurrence_count
    while len(occurrences) < count:
        if is_finished(rule, current, emitted):
            break
        occurrences.append(current)
        emitted += 1
        nxt = next_occurrence(current, rule)
        if nxt is None:
            break
        current = nxt

    return occurrences


def describe(rule: RecurrenceRule) -> str:
    """Human-readable summary of a rule, e.g. 'Every Monday, starting 2024-01-01, 3 times'."""
    start = rule.start_date
    match rule.frequency:
        case Frequency.DAILY:
            desc = "Every day"
        case Frequency.WEEKLY:
            # day_of_week is informational; the anchor decides the weekday
            desc = f"Every {WEEKDAY_NAMES[(start.weekday() + 1) % 7]}"
        case Frequency.MONTHLY:
            desc = f"Every month on day {start.day}"
        case Frequency.YEARLY:
            desc = f"Every year on {MONTH_NAMES[start.month - 1]} {start.day}"
        case Frequency.WORKDAYS:
            desc = "Every workday (Mon-Fri)"

    desc += f", starting {start.strftime('%Y-%m-%d')}"

    match rule.ends_type:
        case EndsType.ON_DATE:
            end = rule.end_date.astimezone(start.tzinfo)
            desc += f", until {end.strftime('%Y-%m-%d')}"
        case EndsType.AFTER_OCCURRENCES:
            desc += ", once" if rule.occurrences == 1 else f", {rule.occurrences} times"
        case EndsType.NEVER:
            desc += ", forever"

    return desc
