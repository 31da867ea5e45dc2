"""
Recurrence rule model.

A RecurrenceRule is an immutable value identified by its canonical summary
string, e.g.::

    FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;DTSTART=20240101;UNTIL=20240301
    FREQ=MONTHLY;INTERVAL=1;BYDAY=2TU;DTSTART=20240101

The summary is what gets persisted. The parsed structure (ParsedRecurrence)
is derived from it on first access and never takes part in equality or
hashing.

Two input forms are accepted when building a rule:
- compact: 'DAILY:', 'WEEKLY:MONDAY,WEDNESDAY', 'MONTHLY:2:TUESDAY',
  optionally followed by ':INTERVAL=2'
- iCalendar style: 'FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE'
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from event_planner.exceptions import ErrorCode, InvalidRecurrenceRule

logger = logging.getLogger(__name__)


class RecurrenceFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


# Index matches date.weekday() (Monday == 0)
DAY_NAMES = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")
DAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

ORDINAL_WORDS = {1: "first", 2: "second", 3: "third", 4: "fourth"}

_MONTHLY_BYDAY = re.compile(r"^([+]?\d)([A-Z]{2})$")


@dataclass(frozen=True)
class ParsedRecurrence:
    """
    Parsed recurrence pattern plus its date bounds.

    days_of_week uses date.weekday() numbering. ordinal is only set for
    MONTHLY rules (1-4: first..fourth occurrence of the weekday in the
    month). end_date None means the pattern never ends.
    """

    frequency: RecurrenceFrequency
    days_of_week: frozenset[int]
    ordinal: Optional[int] = None
    interval: int = 1
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def with_bounds(self, start_date: Optional[date], end_date: Optional[date]) -> "ParsedRecurrence":
        return ParsedRecurrence(
            frequency=self.frequency,
            days_of_week=self.days_of_week,
            ordinal=self.ordinal,
            interval=self.interval,
            start_date=start_date,
            end_date=end_date,
        )


def _parse_day(token: str, rule: str) -> int:
    token = token.strip().upper()
    if token in DAY_NAMES:
        return DAY_NAMES.index(token)
    if token in DAY_CODES:
        return DAY_CODES.index(token)
    logger.warning(f"Invalid day name {token!r} in rule {rule!r}")
    raise InvalidRecurrenceRule(ErrorCode.INVALID_DAY_OF_WEEK, rule)


def _parse_days(text: str, missing_code: ErrorCode, rule: str) -> frozenset[int]:
    tokens = [t for t in text.split(",") if t.strip()]
    if not tokens:
        raise InvalidRecurrenceRule(missing_code, rule)
    return frozenset(_parse_day(t, rule) for t in tokens)


def _parse_ordinal(text: str, rule: str) -> int:
    try:
        ordinal = int(text.strip())
    except ValueError:
        raise InvalidRecurrenceRule(ErrorCode.MONTHLY_INVALID_ORDINAL, rule)
    if ordinal < 1 or ordinal > 4:
        raise InvalidRecurrenceRule(ErrorCode.MONTHLY_INVALID_ORDINAL, rule)
    return ordinal


def _parse_interval(text: str, rule: str) -> int:
    try:
        interval = int(text.strip())
    except ValueError:
        raise InvalidRecurrenceRule(ErrorCode.INVALID_INTERVAL, rule)
    if interval < 1:
        raise InvalidRecurrenceRule(ErrorCode.INVALID_INTERVAL, rule)
    return interval


def _parse_frequency(text: str, rule: str) -> RecurrenceFrequency:
    try:
        return RecurrenceFrequency(text.strip().upper())
    except ValueError:
        raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)


def _parse_ical_date(text: str, rule: str) -> date:
    try:
        return date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except (ValueError, IndexError):
        raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)


def _parse_compact(rule: str) -> ParsedRecurrence:
    parts = rule.strip().split(":")
    if len(parts) < 2:
        raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)

    interval = 1
    if parts[-1].strip().upper().startswith("INTERVAL="):
        interval = _parse_interval(parts.pop().split("=", 1)[1], rule)

    frequency = _parse_frequency(parts[0], rule)

    if frequency is RecurrenceFrequency.DAILY:
        return ParsedRecurrence(frequency, frozenset(range(7)), interval=interval)

    if frequency is RecurrenceFrequency.WEEKLY:
        days = _parse_days(parts[1] if len(parts) > 1 else "", ErrorCode.WEEKLY_MISSING_DAYS, rule)
        return ParsedRecurrence(frequency, days, interval=interval)

    if len(parts) < 3:
        raise InvalidRecurrenceRule(ErrorCode.MONTHLY_MISSING_ORDINAL_OR_DAY, rule)
    ordinal = _parse_ordinal(parts[1], rule)
    days = _parse_days(parts[2], ErrorCode.MONTHLY_MISSING_ORDINAL_OR_DAY, rule)
    return ParsedRecurrence(frequency, days, ordinal=ordinal, interval=interval)


def _parse_ical(rule: str) -> ParsedRecurrence:
    fields: dict[str, str] = {}
    for part in rule.strip().rstrip(";").split(";"):
        if "=" not in part:
            raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)
        key, value = part.split("=", 1)
        fields[key.strip().upper()] = value.strip().upper()

    frequency = _parse_frequency(fields.get("FREQ", ""), rule)
    interval = _parse_interval(fields["INTERVAL"], rule) if "INTERVAL" in fields else 1
    start_date = _parse_ical_date(fields["DTSTART"], rule) if "DTSTART" in fields else None
    end_date = _parse_ical_date(fields["UNTIL"], rule) if "UNTIL" in fields else None
    byday = fields.get("BYDAY", "")

    if frequency is RecurrenceFrequency.DAILY:
        return ParsedRecurrence(frequency, frozenset(range(7)), None, interval, start_date, end_date)

    if frequency is RecurrenceFrequency.WEEKLY:
        days = _parse_days(byday, ErrorCode.WEEKLY_MISSING_DAYS, rule)
        return ParsedRecurrence(frequency, days, None, interval, start_date, end_date)

    tokens = [t for t in byday.split(",") if t.strip()]
    if not tokens:
        raise InvalidRecurrenceRule(ErrorCode.MONTHLY_MISSING_ORDINAL_OR_DAY, rule)
    ordinals = set()
    days = set()
    for token in tokens:
        match = _MONTHLY_BYDAY.match(token.strip())
        if not match:
            raise InvalidRecurrenceRule(ErrorCode.MONTHLY_MISSING_ORDINAL_OR_DAY, rule)
        ordinals.add(_parse_ordinal(match.group(1), rule))
        days.add(_parse_day(match.group(2), rule))
    # One ordinal shared by every listed weekday
    if len(ordinals) != 1:
        raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)
    return ParsedRecurrence(frequency, frozenset(days), ordinals.pop(), interval, start_date, end_date)


def parse_rule(rule: str) -> ParsedRecurrence:
    """
    Parse rule text in either accepted form.

    Args:
        rule: Compact or iCalendar-style rule text

    Returns:
        ParsedRecurrence (bounds only set when the text carries DTSTART/UNTIL)

    Raises:
        InvalidRecurrenceRule: With a code describing what is wrong
    """
    if rule is None or not rule.strip():
        raise InvalidRecurrenceRule(ErrorCode.UNSUPPORTED_RECURRENCE_COMBINATION, rule)

    logger.debug(f"Parsing recurrence rule: {rule}")
    if "FREQ=" in rule.upper():
        return _parse_ical(rule)
    return _parse_compact(rule)


def build_summary(parsed: ParsedRecurrence) -> str:
    """Render the canonical summary for a parsed rule."""
    parts = [f"FREQ={parsed.frequency.value}", f"INTERVAL={parsed.interval}"]
    days = sorted(parsed.days_of_week)

    if parsed.frequency is RecurrenceFrequency.WEEKLY:
        parts.append("BYDAY=" + ",".join(DAY_CODES[d] for d in days))
    elif parsed.frequency is RecurrenceFrequency.MONTHLY:
        parts.append("BYDAY=" + ",".join(f"{parsed.ordinal}{DAY_CODES[d]}" for d in days))

    if parsed.start_date is not None:
        parts.append(f"DTSTART={parsed.start_date:%Y%m%d}")
    if parsed.end_date is not None:
        parts.append(f"UNTIL={parsed.end_date:%Y%m%d}")
    return ";".join(parts)


def _format_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _format_days(days: frozenset[int]) -> str:
    return " and ".join(DAY_NAMES[d].capitalize() for d in sorted(days))


class RecurrenceRule:
    """
    Immutable recurrence rule value.

    Equality and hashing use the canonical summary only. The parsed
    structure is a lazily computed cache of that summary.
    """

    __slots__ = ("_summary", "_parsed")

    def __init__(self, summary: str, parsed: Optional[ParsedRecurrence] = None):
        if not summary or not summary.strip():
            raise InvalidRecurrenceRule(ErrorCode.MISSING_RECURRENCE_RULE, summary)
        self._summary = summary.strip()
        self._parsed = parsed

    @classmethod
    def from_input(
        cls,
        rule: str,
        start_date: Optional[date],
        end_date: Optional[date] = None,
    ) -> "RecurrenceRule":
        """
        Build a canonical rule from user input and the owning template's bounds.

        Raises:
            InvalidRecurrenceRule: If the rule text is malformed
        """
        parsed = parse_rule(rule).with_bounds(start_date, end_date)
        return cls(build_summary(parsed), parsed)

    @property
    def summary(self) -> str:
        return self._summary

    @property
    def parsed(self) -> ParsedRecurrence:
        if self._parsed is None:
            self._parsed = parse_rule(self._summary)
        return self._parsed

    def with_bounds(self, start_date: Optional[date], end_date: Optional[date]) -> "RecurrenceRule":
        """Return the same pattern re-anchored on new bounds."""
        parsed = self.parsed.with_bounds(start_date, end_date)
        return RecurrenceRule(build_summary(parsed), parsed)

    def describe(self) -> str:
        """
        Human-readable description.

        Example: 'Every Monday and Wednesday from January 1, 2024 forever'
        """
        parsed = self.parsed
        n = parsed.interval

        if parsed.frequency is RecurrenceFrequency.DAILY:
            text = "Every day" if n == 1 else f"Every {n} days"
        elif parsed.frequency is RecurrenceFrequency.WEEKLY:
            days = _format_days(parsed.days_of_week)
            text = f"Every {days}" if n == 1 else f"Every {n} weeks on {days}"
        else:
            ordinal = ORDINAL_WORDS.get(parsed.ordinal, "unknown")
            period = "the month" if n == 1 else f"every {n} months"
            text = f"Every {ordinal} {_format_days(parsed.days_of_week)} of {period}"

        if parsed.start_date is not None:
            text += f" from {_format_date(parsed.start_date)}"
        if parsed.end_date is not None:
            text += f" until {_format_date(parsed.end_date)}"
        else:
            text += " forever"
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        return self._summary == other._summary

    def __hash__(self) -> int:
        return hash(self._summary)

    def __repr__(self) -> str:
        return f"<RecurrenceRule('{self._summary}')>"
