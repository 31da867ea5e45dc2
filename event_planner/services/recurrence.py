"""
Recurrence expansion service.

Expands a parsed recurrence rule into the calendar dates on which it fires
inside an inclusive date window, honouring skip days. Expansion is pure:
identical inputs always produce the same ascending list of dates.

Uses python-dateutil rrule for the calendar arithmetic.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import TYPE_CHECKING, AbstractSet, Optional

from dateutil import rrule as du_rrule

from event_planner.recurrence.rules import ParsedRecurrence, RecurrenceFrequency

if TYPE_CHECKING:
    from event_planner.models.templates import RecurringTemplate

logger = logging.getLogger(__name__)

_FREQUENCIES = {
    RecurrenceFrequency.DAILY: du_rrule.DAILY,
    RecurrenceFrequency.WEEKLY: du_rrule.WEEKLY,
    RecurrenceFrequency.MONTHLY: du_rrule.MONTHLY,
}


@dataclass(frozen=True)
class Occurrence:
    """One concrete occurrence of a recurring template."""

    day: date
    start: datetime
    end: datetime


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def build_rrule(parsed: ParsedRecurrence, anchor: date) -> du_rrule.rrule:
    """
    Build a dateutil rrule for a parsed rule.

    Args:
        parsed: Parsed recurrence
        anchor: Date the interval counts from when the rule has no start date

    Returns:
        dateutil rrule producing naive midnight datetimes
    """
    if parsed.frequency is RecurrenceFrequency.DAILY:
        byweekday = None
    elif parsed.frequency is RecurrenceFrequency.WEEKLY:
        byweekday = sorted(parsed.days_of_week)
    else:
        byweekday = [du_rrule.weekdays[d](parsed.ordinal) for d in sorted(parsed.days_of_week)]

    return du_rrule.rrule(
        _FREQUENCIES[parsed.frequency],
        dtstart=_midnight(parsed.start_date or anchor),
        interval=parsed.interval,
        byweekday=byweekday,
        until=_midnight(parsed.end_date) if parsed.end_date else None,
    )


def expand_recurrence(
    parsed: Optional[ParsedRecurrence],
    window_start: date,
    window_end: date,
    skip_days: AbstractSet[date] = frozenset(),
) -> list[date]:
    """
    Expand a rule into the dates it fires on within [window_start, window_end].

    The rule's own start/end dates are intersected with the window first;
    an empty intersection yields an empty list.

    Args:
        parsed: Parsed recurrence (None expands to nothing)
        window_start: First local date of the window (inclusive)
        window_end: Last local date of the window (inclusive)
        skip_days: Dates on which the pattern is suppressed

    Returns:
        Ascending list of dates without duplicates
    """
    if parsed is None:
        return []

    start = max(window_start, parsed.start_date) if parsed.start_date else window_start
    end = min(window_end, parsed.end_date) if parsed.end_date else window_end
    if start > end:
        logger.debug(f"Rule bounds {parsed.start_date}..{parsed.end_date} miss window {window_start}..{window_end}")
        return []

    rule = build_rrule(parsed, anchor=window_start)
    occurrences = [
        occurrence.date()
        for occurrence in rule.between(_midnight(start), _midnight(end), inc=True)
        if occurrence.date() not in skip_days
    ]

    logger.debug(f"Expanded {parsed.frequency.value} rule over {start}..{end}: {len(occurrences)} occurrences")
    return occurrences


def occurs_on(parsed: Optional[ParsedRecurrence], day: date) -> bool:
    """Whether the rule fires on a single date (bounds and interval honoured)."""
    return bool(expand_recurrence(parsed, day, day))


def next_occurrence(
    parsed: Optional[ParsedRecurrence],
    after: date,
    skip_days: AbstractSet[date] = frozenset(),
) -> Optional[date]:
    """
    First date strictly after `after` on which the rule fires.

    Returns:
        The date, or None when the rule has ended
    """
    if parsed is None:
        return None

    rule = build_rrule(parsed, anchor=after)
    cursor = _midnight(after)
    while True:
        found = rule.after(cursor, inc=False)
        if found is None:
            return None
        if found.date() not in skip_days:
            return found.date()
        cursor = found


def expand_template(
    template: "RecurringTemplate",
    window_start: date,
    window_end: date,
    zone_name: str,
    include_skipped: bool = False,
) -> list[Occurrence]:
    """
    Concrete occurrences of a template between two local dates.

    The template's own start/end dates bound the rule. Times of day are
    combined with each date in `zone_name`.

    Args:
        template: Template with a parseable rule and both times of day
        window_start: First local date (inclusive)
        window_end: Last local date (inclusive)
        zone_name: Owner's IANA zone
        include_skipped: Ignore the template's skip days

    Returns:
        Occurrences in ascending order
    """
    rule = template.recurrence_rule
    if rule is None or template.start_time is None or template.end_time is None:
        return []

    parsed = rule.parsed.with_bounds(template.start_date, template.end_date)
    skip = frozenset() if include_skipped else template.skip_days

    occurrences = []
    for day in expand_recurrence(parsed, window_start, window_end, skip):
        start, end = template.occurrence_bounds(day, zone_name)
        occurrences.append(Occurrence(day=day, start=start, end=end))
    return occurrences
