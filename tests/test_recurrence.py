"""Tests for recurrence rules and occurrence generation."""

import json
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from dayplan.core.recurrence import (
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

TORONTO = ZoneInfo("America/Toronto")
UTC = timezone.utc


def dt(year, month, day, hour=0, minute=0, tz=UTC) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=tz)


@pytest.fixture
def make_rule():
    """Factory for rules anchored at 2024-01-01 00:00 UTC (a Monday)."""
    def _make(frequency="daily", start=None, **kwargs) -> RecurrenceRule:
        return RecurrenceRule(frequency=frequency, start_date=start or dt(2024, 1, 1), **kwargs)
    return _make


class TestRuleConstruction:
    def test_coerces_strings_to_enums(self, make_rule):
        rule = make_rule("weekly", ends_type="after_occurrences", occurrences=3)
        assert rule.frequency is Frequency.WEEKLY
        assert rule.ends_type is EndsType.AFTER_OCCURRENCES

    def test_unknown_frequency(self, make_rule):
        with pytest.raises(RecurrenceRuleError, match="frequency"):
            make_rule("fortnightly")

    def test_unknown_ends_type(self, make_rule):
        with pytest.raises(RecurrenceRuleError, match="ends type"):
            make_rule(ends_type="sometimes")

    def test_after_occurrences_requires_count(self, make_rule):
        with pytest.raises(RecurrenceRuleError, match="occurrences"):
            make_rule(ends_type=EndsType.AFTER_OCCURRENCES)

    @pytest.mark.parametrize("bad", [0, -2, 2.5, "3", True])
    def test_after_occurrences_requires_positive_int(self, make_rule, bad):
        with pytest.raises(RecurrenceRuleError):
            make_rule(ends_type=EndsType.AFTER_OCCURRENCES, occurrences=bad)

    def test_on_date_requires_end_date(self, make_rule):
        with pytest.raises(RecurrenceRuleError, match="end_date"):
            make_rule(ends_type=EndsType.ON_DATE)

    def test_end_date_before_start(self, make_rule):
        with pytest.raises(RecurrenceRuleError, match="precedes"):
            make_rule(ends_type=EndsType.ON_DATE, end_date=dt(2023, 12, 31))

    def test_end_date_equal_to_start_is_allowed(self, make_rule):
        rule = make_rule(ends_type=EndsType.ON_DATE, end_date=dt(2024, 1, 1))
        assert rule.end_date == rule.start_date

    def test_both_end_fields_rejected(self, make_rule):
        with pytest.raises(RecurrenceRuleError):
            make_rule(ends_type=EndsType.ON_DATE, end_date=dt(2024, 2, 1), occurrences=3)

    def test_never_takes_no_end_fields(self, make_rule):
        with pytest.raises(RecurrenceRuleError):
            make_rule(occurrences=3)

    def test_naive_start_rejected(self):
        with pytest.raises(RecurrenceRuleError, match="timezone-aware"):
            RecurrenceRule(frequency="daily", start_date=datetime(2024, 1, 1))

    @pytest.mark.parametrize("bad", [-1, 7, "Monday"])
    def test_day_of_week_range(self, make_rule, bad):
        with pytest.raises(RecurrenceRuleError, match="day_of_week"):
            make_rule("weekly", day_of_week=bad)

    def test_rule_is_immutable(self, make_rule):
        rule = make_rule()
        with pytest.raises(AttributeError):
            rule.start_date = dt(2025, 1, 1)


class TestSerialization:
    def test_storage_format(self, make_rule):
        rule = make_rule("weekly", start=dt(2024, 1, 1, 9, tz=TORONTO), ends_type="after_occurrences", occurrences=3)
        data = json.loads(serialize(rule))
        assert data == {
            "frequency": "weekly",
            "startDate": "2024-01-01T14:00:00.000Z",
            "endsType": "after_occurrences",
            "occurrences": 3,
        }

    def test_optional_fields_included_when_set(self, make_rule):
        rule = make_rule("weekly", ends_type="on_date", end_date=dt(2024, 3, 1), day_of_week=1)
        data = json.loads(serialize(rule))
        assert data["endDate"] == "2024-03-01T00:00:00.000Z"
        assert data["dayOfWeek"] == 1
        assert "occurrences" not in data

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"frequency": "daily"},
            {"frequency": "weekly", "day_of_week": 1},
            {"frequency": "monthly", "ends_type": "on_date", "end_date": dt(2024, 12, 31, 23, 59)},
            {"frequency": "yearly", "ends_type": "after_occurrences", "occurrences": 5},
            {"frequency": "workdays", "start": dt(2024, 3, 8, 8, 30, tz=TORONTO)},
            {"frequency": "daily", "start": datetime(2024, 1, 1, 9, 0, 0, 123456, tzinfo=UTC)},
        ],
    )
    def test_round_trip(self, make_rule, kwargs):
        rule = make_rule(**kwargs)
        assert deserialize(serialize(rule)) == rule

    def test_deserialize_into_zone(self, make_rule):
        rule = make_rule(start=dt(2024, 1, 1, 9, tz=TORONTO))
        restored = deserialize(serialize(rule), TORONTO)
        assert restored.start_date.tzinfo == TORONTO
        assert restored.start_date.hour == 9

    def test_accepts_offset_timestamps(self):
        rule = deserialize('{"frequency": "daily", "startDate": "2024-01-01T09:00:00-05:00", "endsType": "never"}')
        assert rule.start_date == dt(2024, 1, 1, 14)

    def test_missing_ends_type_means_never(self):
        rule = deserialize('{"frequency": "daily", "startDate": "2024-01-01T00:00:00.000Z"}')
        assert rule.ends_type is EndsType.NEVER

    @pytest.mark.parametrize(
        "text",
        [
            None,
            "",
            "not json",
            "[1, 2]",
            '"daily"',
            '{"startDate": "2024-01-01T00:00:00Z"}',
            '{"frequency": "daily"}',
            '{"frequency": "hourly", "startDate": "2024-01-01T00:00:00Z"}',
            '{"frequency": "daily", "startDate": "yesterday"}',
            '{"frequency": "daily", "startDate": 12345}',
            '{"frequency": "daily", "startDate": "2024-01-01T00:00:00Z", "endsType": "after_occurrences"}',
            '{"frequency": "daily", "startDate": "2024-01-01T00:00:00Z", "endsType": "on_date"}',
        ],
    )
    def test_malformed_input_returns_none(self, text):
        assert deserialize(text) is None


class TestNextOccurrence:
    def test_daily(self, make_rule):
        assert next_occurrence(dt(2024, 1, 31), make_rule("daily")) == dt(2024, 2, 1)

    def test_weekly_keeps_from_date_weekday(self, make_rule):
        # Rule anchored on a Monday with day_of_week Friday; advance from a Wednesday
        rule = make_rule("weekly", day_of_week=5)
        assert next_occurrence(dt(2024, 1, 3), rule) == dt(2024, 1, 10)

    def test_monthly_same_day(self, make_rule):
        assert next_occurrence(dt(2024, 1, 15), make_rule("monthly")) == dt(2024, 2, 15)

    def test_monthly_clamps_to_month_end_leap_year(self, make_rule):
        assert next_occurrence(dt(2024, 1, 31), make_rule("monthly")) == dt(2024, 2, 29)

    def test_monthly_clamps_to_month_end(self, make_rule):
        assert next_occurrence(dt(2023, 1, 31), make_rule("monthly")) == dt(2023, 2, 28)
        assert next_occurrence(dt(2023, 3, 31), make_rule("monthly")) == dt(2023, 4, 30)

    def test_monthly_across_year(self, make_rule):
        assert next_occurrence(dt(2024, 12, 10), make_rule("monthly")) == dt(2025, 1, 10)

    def test_yearly(self, make_rule):
        assert next_occurrence(dt(2024, 6, 1), make_rule("yearly")) == dt(2025, 6, 1)

    def test_yearly_leap_day_clamps(self, make_rule):
        assert next_occurrence(dt(2024, 2, 29), make_rule("yearly")) == dt(2025, 2, 28)

    def test_workdays_friday_to_monday(self, make_rule):
        friday = dt(2024, 1, 5, 9)
        assert next_occurrence(friday, make_rule("workdays")) == dt(2024, 1, 8, 9)

    def test_workdays_saturday_to_monday(self, make_rule):
        assert next_occurrence(dt(2024, 1, 6), make_rule("workdays")) == dt(2024, 1, 8)

    def test_workdays_midweek(self, make_rule):
        assert next_occurrence(dt(2024, 1, 2), make_rule("workdays")) == dt(2024, 1, 3)

    def test_keeps_wall_clock_across_dst(self, make_rule):
        # DST starts 2024-03-10 in Toronto
        before = dt(2024, 3, 9, 9, tz=TORONTO)
        after = next_occurrence(before, make_rule("daily", start=before))
        assert after.hour == 9
        assert after.utcoffset() == timedelta(hours=-4)

    def test_unknown_frequency_returns_none(self, make_rule):
        rule = make_rule("daily")
        object.__setattr__(rule, "frequency", "hourly")
        assert next_occurrence(dt(2024, 1, 1), rule) is None


class TestIsFinished:
    def test_never(self, make_rule):
        assert is_finished(make_rule(), dt(2099, 1, 1)) is False

    def test_on_date(self, make_rule):
        rule = make_rule(ends_type="on_date", end_date=dt(2024, 1, 10))
        assert is_finished(rule, dt(2024, 1, 10)) is False
        assert is_finished(rule, dt(2024, 1, 10, 0, 1)) is True

    def test_after_occurrences_uses_caller_count(self, make_rule):
        rule = make_rule(ends_type="after_occurrences", occurrences=3)
        assert is_finished(rule, dt(2024, 1, 1), occurrence_count=2) is False
        assert is_finished(rule, dt(2024, 1, 1), occurrence_count=3) is True


class TestGenerateFutureOccurrences:
    def test_weekly_after_three_occurrences(self, make_rule):
        rule = make_rule("weekly", ends_type="after_occurrences", occurrences=3)
        assert generate_future_occurrences(rule, 10, dt(2024, 1, 1)) == [
            dt(2024, 1, 1),
            dt(2024, 1, 8),
            dt(2024, 1, 15),
        ]

    def test_on_date_termination(self, make_rule):
        now = dt(2024, 5, 1, 8)
        rule = make_rule("daily", start=now, ends_type="on_date", end_date=now + timedelta(days=10))
        dates = generate_future_occurrences(rule, 100, now)
        assert len(dates) <= 11
        assert all(d <= rule.end_date for d in dates)
        assert dates[-1] == rule.end_date

    def test_count_budget(self, make_rule):
        assert len(generate_future_occurrences(make_rule("daily"), 5, dt(2024, 1, 1))) == 5

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, make_rule, count):
        assert generate_future_occurrences(make_rule(), count, dt(2024, 1, 1)) == []

    def test_starts_at_start_from_when_later(self, make_rule):
        rule = make_rule("weekly")  # anchored on a Monday
        dates = generate_future_occurrences(rule, 2, dt(2024, 1, 17))  # a Wednesday
        assert dates == [dt(2024, 1, 17), dt(2024, 1, 24)]

    def test_start_from_in_other_zone(self, make_rule):
        rule = make_rule("daily")
        dates = generate_future_occurrences(rule, 1, dt(2024, 1, 3, 7, tz=TORONTO))
        assert dates == [dt(2024, 1, 3, 12)]
        assert dates[0].tzinfo is UTC

    def test_skipped_dates_do_not_consume_occurrences(self, make_rule):
        rule = make_rule("daily", ends_type="after_occurrences", occurrences=2)
        assert generate_future_occurrences(rule, 10, dt(2024, 2, 1)) == [dt(2024, 2, 1), dt(2024, 2, 2)]

    def test_already_materialized_occurrences(self, make_rule):
        rule = make_rule("daily", ends_type="after_occurrences", occurrences=3)
        assert generate_future_occurrences(rule, 10, dt(2024, 1, 1), occurrence_count=2) == [dt(2024, 1, 1)]
        assert generate_future_occurrences(rule, 10, dt(2024, 1, 1), occurrence_count=3) == []

    def test_start_from_before_anchor(self, make_rule):
        rule = make_rule("daily", start=dt(2024, 3, 1))
        assert generate_future_occurrences(rule, 1, dt(2024, 1, 1)) == [dt(2024, 3, 1)]

    def test_start_from_after_end_date(self, make_rule):
        rule = make_rule("daily", ends_type="on_date", end_date=dt(2024, 1, 5))
        assert generate_future_occurrences(rule, 10, dt(2024, 2, 1)) == []

    def test_workdays_skip_weekends(self, make_rule):
        rule = make_rule("workdays", start=dt(2024, 1, 4))  # Thursday
        dates = generate_future_occurrences(rule, 4, dt(2024, 1, 4))
        assert dates == [dt(2024, 1, 4), dt(2024, 1, 5), dt(2024, 1, 8), dt(2024, 1, 9)]

    def test_workdays_weekend_anchor_moves_to_monday(self, make_rule):
        rule = make_rule("workdays", start=dt(2024, 1, 6))  # Saturday
        assert generate_future_occurrences(rule, 1, dt(2024, 1, 1)) == [dt(2024, 1, 8)]

    def test_monthly_from_month_end(self, make_rule):
        rule = make_rule("monthly", start=dt(2024, 1, 31))
        dates = generate_future_occurrences(rule, 3, dt(2024, 1, 1))
        assert dates == [dt(2024, 1, 31), dt(2024, 2, 29), dt(2024, 3, 29)]

    def test_restartable(self, make_rule):
        rule = make_rule("weekly", ends_type="after_occurrences", occurrences=4)
        first = generate_future_occurrences(rule, 10, dt(2024, 1, 1))
        second = generate_future_occurrences(rule, 10, dt(2024, 1, 1))
        assert first == second
        first.clear()
        assert generate_future_occurrences(rule, 10, dt(2024, 1, 1)) == second


class TestDescribe:
    def test_weekly_after_occurrences(self, make_rule):
        rule = make_rule("weekly", ends_type="after_occurrences", occurrences=3)
        assert describe(rule) == "Every Monday, starting 2024-01-01, 3 times"

    def test_weekly_names_the_anchor_weekday(self, make_rule):
        rule = make_rule("weekly", day_of_week=2)
        assert describe(rule) == "Every Monday, starting 2024-01-01, forever"
        assert generate_future_occurrences(rule, 1, rule.start_date)[0].weekday() == 0

    def test_daily_until(self, make_rule):
        rule = make_rule("daily", ends_type="on_date", end_date=dt(2024, 1, 11))
        assert describe(rule) == "Every day, starting 2024-01-01, until 2024-01-11"

    def test_monthly(self, make_rule):
        rule = make_rule("monthly", start=dt(2024, 1, 31))
        assert describe(rule) == "Every month on day 31, starting 2024-01-31, forever"

    def test_yearly_once(self, make_rule):
        rule = make_rule("yearly", start=dt(2024, 2, 29), ends_type="after_occurrences", occurrences=1)
        assert describe(rule) == "Every year on Feb 29, starting 2024-02-29, once"

    def test_workdays(self, make_rule):
        assert describe(make_rule("workdays")) == "Every workday (Mon-Fri), starting 2024-01-01, forever"

    def test_uses_rule_zone(self, make_rule):
        # 23:00 Toronto is already the next day in UTC
        rule = make_rule("daily", start=dt(2024, 1, 1, 23, tz=TORONTO))
        assert describe(rule).startswith("Every day, starting 2024-01-01")

    def test_distinguishes_rules(self, make_rule):
        assert describe(make_rule("daily")) != describe(make_rule("workdays"))
