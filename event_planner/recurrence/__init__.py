"""
Recurrence rule model.
"""

from event_planner.recurrence.rules import (
    DAY_CODES,
    DAY_NAMES,
    ParsedRecurrence,
    RecurrenceFrequency,
    RecurrenceRule,
    build_summary,
    parse_rule,
)

__all__ = [
    "DAY_CODES",
    "DAY_NAMES",
    "ParsedRecurrence",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "build_summary",
    "parse_rule",
]
