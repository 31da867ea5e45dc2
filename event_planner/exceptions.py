"""
Error kinds raised by the scheduling engine.

Every error carries a machine-readable ErrorCode so callers can build
actionable messages. Errors are raised at the point of detection and are
never retried internally.
"""

from datetime import date
from enum import Enum
from typing import Any, Iterable


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Missing required fields
    MISSING_NAME = "MISSING_NAME"
    MISSING_START_TIME = "MISSING_START_TIME"
    MISSING_END_TIME = "MISSING_END_TIME"
    MISSING_START_DATE = "MISSING_START_DATE"
    MISSING_CATEGORY = "MISSING_CATEGORY"
    MISSING_RECURRENCE_RULE = "MISSING_RECURRENCE_RULE"

    # Time ranges
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    COMPLETION_IN_FUTURE = "COMPLETION_IN_FUTURE"
    COMPLETION_WITHOUT_END = "COMPLETION_WITHOUT_END"

    # Recurrence rules
    UNSUPPORTED_RECURRENCE_COMBINATION = "UNSUPPORTED_RECURRENCE_COMBINATION"
    WEEKLY_MISSING_DAYS = "WEEKLY_MISSING_DAYS"
    INVALID_DAY_OF_WEEK = "INVALID_DAY_OF_WEEK"
    MONTHLY_MISSING_ORDINAL_OR_DAY = "MONTHLY_MISSING_ORDINAL_OR_DAY"
    MONTHLY_INVALID_ORDINAL = "MONTHLY_INVALID_ORDINAL"
    INVALID_INTERVAL = "INVALID_INTERVAL"

    # Skip days
    INVALID_SKIP_DAY_ADDITION = "INVALID_SKIP_DAY_ADDITION"
    INVALID_SKIP_DAY_REMOVAL = "INVALID_SKIP_DAY_REMOVAL"

    # State
    SCHEDULING_CONFLICT = "SCHEDULING_CONFLICT"
    ALREADY_CONFIRMED = "ALREADY_CONFIRMED"

    # Lookups
    COMMITMENT_NOT_FOUND = "COMMITMENT_NOT_FOUND"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    OWNER_NOT_FOUND = "OWNER_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    CATEGORY_NOT_OWNED = "CATEGORY_NOT_OWNED"


class EventPlannerError(Exception):
    """Base exception for scheduling engine errors."""

    code: ErrorCode | None = None

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


_FIELD_CODES = {
    "name": ErrorCode.MISSING_NAME,
    "start_time": ErrorCode.MISSING_START_TIME,
    "end_time": ErrorCode.MISSING_END_TIME,
    "start_date": ErrorCode.MISSING_START_DATE,
    "category_id": ErrorCode.MISSING_CATEGORY,
    "recurrence_rule": ErrorCode.MISSING_RECURRENCE_RULE,
}


class MissingRequiredField(EventPlannerError):
    """A confirmed entity lacks a required field."""

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}", _FIELD_CODES[field])
        self.field = field


class InvalidTimeRange(EventPlannerError):
    """
    Start is not strictly before end, or a completion is not yet allowed.

    Codes:
    - INVALID_TIME_RANGE: start instant/time-of-day not before end
    - INVALID_DATE_RANGE: template end date before start date
    - COMPLETION_IN_FUTURE: completing a commitment that ends after now
    - COMPLETION_WITHOUT_END: completing an open-ended commitment
    """

    code = ErrorCode.INVALID_TIME_RANGE

    def __init__(self, start: Any, end: Any, code: ErrorCode = ErrorCode.INVALID_TIME_RANGE):
        super().__init__(f"Invalid time range: start={start}, end={end} ({code.value})", code)
        self.start = start
        self.end = end


class SchedulingConflict(EventPlannerError):
    """
    The candidate range overlaps another confirmed commitment of the owner.

    `conflicting` is the first conflicting commitment or template;
    `conflicting_ids` holds every id found when several were collected.
    """

    code = ErrorCode.SCHEDULING_CONFLICT

    def __init__(self, conflicting: Any, conflicting_ids: Iterable[Any] | None = None):
        ids = set(conflicting_ids) if conflicting_ids else {getattr(conflicting, "id", None)}
        super().__init__(f"Scheduling conflict with {sorted(str(i) for i in ids)}")
        self.conflicting = conflicting
        self.conflicting_ids = ids


class AlreadyConfirmed(EventPlannerError):
    """Confirm was called on an entity that is not provisional."""

    code = ErrorCode.ALREADY_CONFIRMED

    def __init__(self, entity_id: Any):
        super().__init__(f"Entity {entity_id} is already confirmed")
        self.entity_id = entity_id


class InvalidRecurrenceRule(EventPlannerError):
    """Recurrence rule text could not be parsed."""

    def __init__(self, code: ErrorCode, rule: str | None = None):
        super().__init__(f"Invalid recurrence rule {rule!r}: {code.value}", code)
        self.rule = rule


class InvalidSkipDay(EventPlannerError):
    """Skip days in the past (or missing) cannot be added or removed."""

    def __init__(self, dates: Iterable[date | None], code: ErrorCode):
        self.dates = set(dates)
        super().__init__(f"Invalid skip days: {sorted(str(d) for d in self.dates)}", code)


class CommitmentNotFound(EventPlannerError):
    code = ErrorCode.COMMITMENT_NOT_FOUND

    def __init__(self, commitment_id: Any):
        super().__init__(f"Commitment {commitment_id} not found")
        self.commitment_id = commitment_id


class TemplateNotFound(EventPlannerError):
    code = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, template_id: Any):
        super().__init__(f"Recurring template {template_id} not found")
        self.template_id = template_id


class OwnerNotFound(EventPlannerError):
    code = ErrorCode.OWNER_NOT_FOUND

    def __init__(self, owner_id: Any):
        super().__init__(f"Owner {owner_id} not found")
        self.owner_id = owner_id


class CategoryNotFound(EventPlannerError):
    code = ErrorCode.CATEGORY_NOT_FOUND

    def __init__(self, category_id: Any):
        super().__init__(f"Category {category_id} not found")
        self.category_id = category_id


class CategoryOwnershipError(EventPlannerError):
    code = ErrorCode.CATEGORY_NOT_OWNED

    def __init__(self, category_id: Any, owner_id: Any):
        super().__init__(f"Category {category_id} is not owned by {owner_id}")
        self.category_id = category_id
        self.owner_id = owner_id
