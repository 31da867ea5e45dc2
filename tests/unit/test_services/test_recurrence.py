"""
Unit tests for the recurrence service.

Tests date expansion, single-date checks, next occurrence lookup and
template occurrences with zones and midnight crossing.
"""

import uuid
from datetime import date, datetime, time, timezone

from event_planner.models.templates import RecurringTemplate
from event_planner.recurrence.rules import RecurrenceRule, parse_rule
from event_planner.services.recurrence import (
    expand_recurrence,
    expand_template,
    next_occurrence,
    occurs_on,
)
from event_planner.timeutils import combine_local


def weekly(days: str, start: date = date(2024, 1, 1), end: date | None = None):
    return parse_rule(f"WEEKLY:{days}").with_bounds(start, end)


def make_template(rule: str, start_time: time, end_time: time, **kwargs) -> RecurringTemplate:
    start_date = kwargs.pop("start_date", date(2024, 1, 1))
    end_date = kwargs.pop("end_date", None)
    return RecurringTemplate(
        id=uuid.uuid4(),
        owner_id=uuid.uuid4(),
        name="Standup",
        start_time=start_time,
        end_time=end_time,
        start_date=start_date,
        end_date=end_date,
        recurrence_summary=RecurrenceRule.from_input(rule, start_date, end_date).summary,
        provisional=False,
        **kwargs,
    )


class TestExpandRecurrence:
    """Test expand_recurrence function."""

    def test_daily_with_skip_day(self):
        """Daily rule, skipping the middle day of a three-day window."""
        parsed = parse_rule("DAILY:").with_bounds(date(2024, 1, 1), None)

        result = expand_recurrence(parsed, date(2024, 1, 1), date(2024, 1, 3), {date(2024, 1, 2)})

        assert result == [date(2024, 1, 1), date(2024, 1, 3)]

    def test_weekly_days(self):
        result = expand_recurrence(weekly("MONDAY,WEDNESDAY"), date(2024, 1, 1), date(2024, 1, 14))

        assert result == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10)]

    def test_expansion_is_deterministic_and_ascending(self):
        parsed = weekly("FRIDAY,MONDAY,WEDNESDAY")
        skip = {date(2024, 1, 10), date(2024, 1, 19)}

        first = expand_recurrence(parsed, date(2024, 1, 1), date(2024, 2, 29), skip)
        second = expand_recurrence(parsed, date(2024, 1, 1), date(2024, 2, 29), skip)

        assert first == second
        assert all(a < b for a, b in zip(first, first[1:]))
        assert not skip & set(first)

    def test_daily_interval_counts_from_start_date(self):
        parsed = parse_rule("FREQ=DAILY;INTERVAL=2").with_bounds(date(2024, 1, 1), None)

        result = expand_recurrence(parsed, date(2024, 1, 4), date(2024, 1, 9))

        assert result == [date(2024, 1, 5), date(2024, 1, 7), date(2024, 1, 9)]

    def test_weekly_interval(self):
        parsed = parse_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO").with_bounds(date(2024, 1, 1), None)

        result = expand_recurrence(parsed, date(2024, 1, 1), date(2024, 1, 31))

        assert result == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]

    def test_monthly_ordinal_weekday(self):
        """Second Tuesday of each month."""
        parsed = parse_rule("MONTHLY:2:TUESDAY").with_bounds(date(2024, 1, 1), None)

        result = expand_recurrence(parsed, date(2024, 1, 1), date(2024, 3, 31))

        assert result == [date(2024, 1, 9), date(2024, 2, 13), date(2024, 3, 12)]

    def test_window_before_rule_start_is_empty(self):
        parsed = weekly("MONDAY", start=date(2024, 6, 1))

        assert expand_recurrence(parsed, date(2024, 1, 1), date(2024, 5, 31)) == []

    def test_window_after_rule_end_is_empty(self):
        parsed = weekly("MONDAY", end=date(2024, 1, 31))

        assert expand_recurrence(parsed, date(2024, 2, 1), date(2024, 3, 1)) == []

    def test_rule_bounds_clip_window(self):
        parsed = weekly("MONDAY", end=date(2024, 1, 10))

        assert expand_recurrence(parsed, date(2023, 12, 1), date(2024, 1, 31)) == [
            date(2024, 1, 1),
            date(2024, 1, 8),
        ]

    def test_none_rule_expands_to_nothing(self):
        assert expand_recurrence(None, date(2024, 1, 1), date(2024, 1, 31)) == []


class TestOccursOn:
    """Test occurs_on and next_occurrence."""

    def test_occurs_on(self):
        parsed = weekly("MONDAY")

        assert occurs_on(parsed, date(2024, 1, 8)) is True
        assert occurs_on(parsed, date(2024, 1, 9)) is False
        assert occurs_on(parsed, date(2023, 12, 25)) is False

    def test_next_occurrence(self):
        parsed = weekly("MONDAY,WEDNESDAY")

        assert next_occurrence(parsed, date(2024, 1, 1)) == date(2024, 1, 3)

    def test_next_occurrence_skips_skip_days(self):
        parsed = weekly("MONDAY,WEDNESDAY")

        assert next_occurrence(parsed, date(2024, 1, 1), {date(2024, 1, 3)}) == date(2024, 1, 8)

    def test_next_occurrence_after_end(self):
        parsed = weekly("MONDAY,WEDNESDAY", end=date(2024, 1, 2))

        assert next_occurrence(parsed, date(2024, 1, 1)) is None


class TestExpandTemplate:
    """Test concrete template occurrences."""

    def test_occurrence_instants_in_owner_zone(self):
        template = make_template("WEEKLY:MONDAY", time(9, 0), time(10, 0))

        occurrences = expand_template(template, date(2024, 1, 8), date(2024, 1, 8), "America/Los_Angeles")

        assert len(occurrences) == 1
        assert occurrences[0].start == datetime(2024, 1, 8, 17, 0, tzinfo=timezone.utc)
        assert occurrences[0].end == datetime(2024, 1, 8, 18, 0, tzinfo=timezone.utc)

    def test_midnight_crossing_ends_next_day(self):
        template = make_template("DAILY:", time(22, 0), time(1, 0))

        occurrences = expand_template(template, date(2024, 1, 1), date(2024, 1, 1), "UTC")

        assert occurrences[0].start == datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc)
        assert occurrences[0].end == datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)

    def test_skip_days_honoured_unless_included(self):
        template = make_template("DAILY:", time(9, 0), time(10, 0))
        template.skip_days = {date(2024, 1, 2)}

        skipped = expand_template(template, date(2024, 1, 1), date(2024, 1, 3), "UTC")
        included = expand_template(template, date(2024, 1, 1), date(2024, 1, 3), "UTC", include_skipped=True)

        assert [o.day for o in skipped] == [date(2024, 1, 1), date(2024, 1, 3)]
        assert len(included) == 3

    def test_template_without_rule_has_no_occurrences(self):
        template = RecurringTemplate(start_time=time(9, 0), end_time=time(10, 0), start_date=date(2024, 1, 1))

        assert expand_template(template, date(2024, 1, 1), date(2024, 1, 31), "UTC") == []

    def test_dst_gap_moves_forward(self):
        """02:30 does not exist on 2024-03-10 in Los Angeles."""
        instant = combine_local(date(2024, 3, 10), time(2, 30), "America/Los_Angeles")

        assert instant == datetime(2024, 3, 10, 10, 30, tzinfo=timezone.utc)
