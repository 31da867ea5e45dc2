"""
Recurring template lifecycle management.

Templates follow the same two validation tiers as commitments. Drafts are
stored as given (rule text may be missing or unparsed); confirmed
templates need every field, a valid time/date range, a parseable rule and
no overlap with the owner's other confirmed templates.

Changes to a confirmed template's name, times or category are propagated
to its future solidified commitments.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import AbstractSet, Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from event_planner.exceptions import (
    AlreadyConfirmed,
    ErrorCode,
    InvalidSkipDay,
    InvalidTimeRange,
    MissingRequiredField,
    OwnerNotFound,
    TemplateNotFound,
)
from event_planner.models.commitments import Commitment
from event_planner.models.lifecycle import LifecycleState
from event_planner.models.owners import Owner
from event_planner.models.templates import RecurringTemplate
from event_planner.recurrence.rules import RecurrenceRule
from event_planner.services import queries
from event_planner.services.categories import get_owned_category, resolve_category_id
from event_planner.services.clock import ClockProvider, today
from event_planner.services.conflicts import ConflictDetector
from event_planner.services.schemas import RecurringTemplateCreate, RecurringTemplateUpdate
from event_planner.timeutils import local_date, to_utc

logger = logging.getLogger(__name__)

# Fields copied onto future solidified commitments when they change
PROPAGATED_FIELDS = frozenset({"name", "start_time", "end_time", "category_id"})

_EDITABLE_FIELDS = (
    "name",
    "description",
    "start_time",
    "end_time",
    "start_date",
    "end_date",
    "category_id",
    "recurrence_summary",
)


@dataclass
class TemplateUpdateResult:
    """Updated template and how many future commitments were rewritten."""

    template: RecurringTemplate
    propagated_count: int = 0


def validate_template_fields(template: RecurringTemplate) -> None:
    """
    Full validation for a confirmed template.

    A single-date template (end date equal to start date) must start before
    it ends; templates spanning several dates may cross midnight.

    Raises:
        MissingRequiredField: For the first missing required field
        InvalidTimeRange: INVALID_DATE_RANGE or INVALID_TIME_RANGE
    """
    if template.name is None or not template.name.strip():
        raise MissingRequiredField("name")
    if template.start_time is None:
        raise MissingRequiredField("start_time")
    if template.end_time is None:
        raise MissingRequiredField("end_time")
    if template.start_date is None:
        raise MissingRequiredField("start_date")
    if template.category_id is None:
        raise MissingRequiredField("category_id")
    if not template.recurrence_summary or not template.recurrence_summary.strip():
        raise MissingRequiredField("recurrence_rule")

    if template.end_date is not None:
        if template.end_date < template.start_date:
            raise InvalidTimeRange(template.start_date, template.end_date, ErrorCode.INVALID_DATE_RANGE)
        if template.end_date == template.start_date and not template.start_time < template.end_time:
            raise InvalidTimeRange(template.start_time, template.end_time)


class RecurringTemplateManager:
    """Lifecycle manager for recurring templates."""

    def __init__(
        self,
        session: Session,
        clock: ClockProvider,
        detector: Optional[ConflictDetector] = None,
    ):
        self._session = session
        self._clock = clock
        self._detector = detector or ConflictDetector(session)
        self._validators = {
            LifecycleState.DRAFT: self._validate_draft,
            LifecycleState.CONFIRMED: self._validate_confirmed,
        }

    def get(self, template_id: UUID) -> RecurringTemplate:
        """
        Raises:
            TemplateNotFound: If no template has this id
        """
        template = queries.get_template_by_id(self._session, template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    def list_drafts(self, owner_id: UUID) -> Sequence[RecurringTemplate]:
        return queries.get_provisional_templates(self._session, owner_id)

    def create(self, owner_id: UUID, data: RecurringTemplateCreate) -> RecurringTemplate:
        """
        Create a template.

        Args:
            owner_id: Owner of the new template
            data: Template fields; an omitted category falls back to the
                owner's uncategorized category

        Returns:
            The persisted (flushed) template

        Raises:
            OwnerNotFound, MissingRequiredField, InvalidTimeRange,
            InvalidRecurrenceRule, CategoryNotFound, CategoryOwnershipError,
            SchedulingConflict
        """
        owner = self._lock_owner(owner_id)

        category_id = data.category_id
        if category_id is None:
            category_id = resolve_category_id(self._session, owner.id, None)

        template = RecurringTemplate(
            owner_id=owner.id,
            name=data.name,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            start_date=data.start_date,
            end_date=data.end_date,
            category_id=category_id,
            recurrence_summary=data.recurrence_rule,
            skip_days_raw=sorted(d.isoformat() for d in data.skip_days),
            provisional=data.provisional,
        )

        if template.provisional:
            logger.info(f"Creating draft recurring template for owner {owner.id}")
        else:
            logger.info(f"Creating recurring template '{template.name}' for owner {owner.id}")

        self._validators[template.state](owner, template)

        self._session.add(template)
        self._session.flush()
        logger.info(f"Recurring template created with ID {template.id}")
        return template

    def update(self, template_id: UUID, patch: RecurringTemplateUpdate) -> TemplateUpdateResult:
        """
        Apply a patch to a template.

        The patched values are validated on a detached copy first, so a
        rejected update leaves the template untouched. For a confirmed
        template, changes to name, times or category are then propagated to
        future solidified commitments.

        Returns:
            TemplateUpdateResult with the template and the propagation count
        """
        template = self.get(template_id)
        owner = self._lock_owner(template.owner_id)
        logger.info(f"Updating recurring template {template.id}")

        changes = patch.changes()
        if "recurrence_rule" in changes:
            changes["recurrence_summary"] = changes.pop("recurrence_rule")

        proposed = self._copy(template, changes)
        changed = {f for f in _EDITABLE_FIELDS if getattr(proposed, f) != getattr(template, f)}
        if not changed:
            logger.debug(f"Recurring template {template.id} unchanged")
            return TemplateUpdateResult(template)

        self._validators[proposed.state](owner, proposed)

        # Instance rewrites are planned from the copy so a rejected plan writes nothing
        plan = []
        to_propagate = changed & PROPAGATED_FIELDS
        if not proposed.provisional and to_propagate:
            plan = self._plan_propagation(proposed, to_propagate, owner.timezone)

        for field in _EDITABLE_FIELDS:
            if getattr(template, field) != getattr(proposed, field):
                setattr(template, field, getattr(proposed, field))
        self._apply_propagation(plan)
        self._session.flush()

        propagated = len(plan)
        if propagated:
            logger.info(f"Propagated changes from recurring template {template.id} to {propagated} future commitments")

        return TemplateUpdateResult(template, propagated)

    def confirm(self, template_id: UUID) -> RecurringTemplate:
        """
        Turn a draft template into a confirmed one.

        Raises:
            AlreadyConfirmed: If the template is not provisional
            MissingRequiredField, InvalidTimeRange, InvalidRecurrenceRule,
            SchedulingConflict: The template stays a draft
        """
        template = self.get(template_id)
        if not template.provisional:
            raise AlreadyConfirmed(template_id)

        owner = self._lock_owner(template.owner_id)
        logger.info(f"Confirming recurring template {template.id}")

        proposed = self._copy(template, {"provisional": False})
        self._validate_confirmed(owner, proposed)

        template.recurrence_summary = proposed.recurrence_summary
        template.provisional = False
        self._session.flush()
        return template

    def delete(self, template_id: UUID) -> None:
        """Delete a template; solidified commitments keep their data."""
        template = self.get(template_id)
        logger.info(f"Deleting recurring template {template.id}")
        self._session.delete(template)
        self._session.flush()

    def delete_drafts(self, owner_id: UUID) -> int:
        """Delete all provisional templates of an owner."""
        self._lock_owner(owner_id)
        drafts = queries.get_provisional_templates(self._session, owner_id)
        for template in drafts:
            self._session.delete(template)
        self._session.flush()
        logger.info(f"Deleted {len(drafts)} draft recurring templates for owner {owner_id}")
        return len(drafts)

    # -------------------------------------------------------------------------
    # Skip days
    # -------------------------------------------------------------------------

    def add_skip_days(self, template_id: UUID, days: Iterable[Optional[date]]) -> RecurringTemplate:
        """
        Suppress the pattern on the given dates.

        Raises:
            InvalidSkipDay: If any date is missing or before today in the owner's zone
        """
        template = self.get(template_id)
        owner = self._lock_owner(template.owner_id)
        days = set(days)
        self._check_not_past(days, owner, ErrorCode.INVALID_SKIP_DAY_ADDITION)

        template.add_skip_days(days)
        self._session.flush()
        logger.info(f"Added {len(days)} skip days to recurring template {template.id}")
        return template

    def remove_skip_days(self, template_id: UUID, days: Iterable[Optional[date]]) -> RecurringTemplate:
        """
        Reinstate the pattern on the given dates.

        For a confirmed template every reintroduced occurrence is checked
        for conflicts first; any conflict rejects the whole removal.

        Raises:
            InvalidSkipDay: If any date is missing or before today in the owner's zone
            SchedulingConflict: If a reintroduced occurrence conflicts
        """
        template = self.get(template_id)
        owner = self._lock_owner(template.owner_id)
        days = set(days)
        self._check_not_past(days, owner, ErrorCode.INVALID_SKIP_DAY_REMOVAL)

        if not template.provisional:
            self._detector.ensure_skip_days_removable(template, days, owner.timezone)

        template.remove_skip_days(days)
        self._session.flush()
        logger.info(f"Removed {len(days)} skip days from recurring template {template.id}")
        return template

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def propagate_changes(
        self,
        template: RecurringTemplate,
        changed_fields: AbstractSet[str],
        owner_zone: str,
    ) -> int:
        """
        Rewrite changed fields on future, not completed, solidified commitments.

        When either time of day changed, both instants are rebuilt from each
        commitment's local date in `owner_zone`, so a slot that starts or
        stops crossing midnight lands its end on the right day. Only values
        that differ from what is stored are written.

        Args:
            template: Template whose values are copied
            changed_fields: Subset of name, start_time, end_time, category_id
            owner_zone: Owner's IANA zone

        Returns:
            Number of commitments actually modified

        Raises:
            InvalidTimeRange: If a rebuilt commitment would not end after it
                starts; nothing is written in that case
        """
        plan = self._plan_propagation(template, changed_fields, owner_zone)
        self._apply_propagation(plan)
        self._session.flush()
        return len(plan)

    def _plan_propagation(
        self,
        template: RecurringTemplate,
        changed_fields: AbstractSet[str],
        owner_zone: str,
    ) -> list[tuple[Commitment, dict[str, Any]]]:
        now = to_utc(self._clock.now(owner_zone))
        instances = queries.get_future_commitments_for_template(self._session, template.id, now)
        logger.debug(f"Propagating {sorted(changed_fields)} to {len(instances)} future commitments")

        plan = []
        for commitment in instances:
            updates: dict[str, Any] = {}
            if "name" in changed_fields:
                updates["name"] = template.name
            if "category_id" in changed_fields:
                updates["category_id"] = template.category_id

            if {"start_time", "end_time"} & changed_fields:
                day = local_date(commitment.start_time, owner_zone)
                start, end = template.occurrence_bounds(day, owner_zone)
                if not start < end:
                    raise InvalidTimeRange(start, end)
                updates["start_time"] = start
                updates["end_time"] = end

            updates = {k: v for k, v in updates.items() if getattr(commitment, k) != v}
            if updates:
                plan.append((commitment, updates))
        return plan

    @staticmethod
    def _apply_propagation(plan: Sequence[tuple[Commitment, dict[str, Any]]]) -> None:
        for commitment, updates in plan:
            for key, value in updates.items():
                setattr(commitment, key, value)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lock_owner(self, owner_id: UUID) -> Owner:
        owner = queries.lock_owner(self._session, owner_id)
        if owner is None:
            raise OwnerNotFound(owner_id)
        return owner

    def _check_not_past(self, days: AbstractSet[Optional[date]], owner: Owner, code: ErrorCode) -> None:
        current = today(self._clock, owner.timezone)
        invalid = [d for d in days if d is None or d < current]
        if invalid:
            raise InvalidSkipDay(invalid, code)

    def _validate_draft(self, owner: Owner, template: RecurringTemplate) -> None:
        """Drafts are intentionally permissive."""

    def _validate_confirmed(self, owner: Owner, template: RecurringTemplate) -> None:
        validate_template_fields(template)
        get_owned_category(self._session, owner.id, template.category_id)

        # Canonicalise (drafts may hold raw rule text) and re-anchor on the dates
        template.recurrence_rule = RecurrenceRule.from_input(
            template.recurrence_summary, template.start_date, template.end_date
        )
        self._detector.ensure_no_template_conflict(template, owner.timezone)

    @staticmethod
    def _copy(template: RecurringTemplate, changes: dict[str, Any]) -> RecurringTemplate:
        """Detached copy of a template with changes applied; never added to the session."""
        values = {field: getattr(template, field) for field in _EDITABLE_FIELDS}
        values.update(
            id=template.id,
            owner_id=template.owner_id,
            skip_days_raw=list(template.skip_days_raw or []),
            provisional=template.provisional,
        )
        values.update(changes)
        return RecurringTemplate(**values)
