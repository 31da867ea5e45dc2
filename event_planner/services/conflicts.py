"""
Scheduling conflict detection.

Rules (only confirmed commitments of the same owner take part):
- Timed vs timed: half-open overlap, touching endpoints do not conflict
- Open-ended candidate: conflicts with a timed commitment ending after the
  candidate's start, or an open-ended commitment with the identical start
- Timed candidate vs open-ended commitment: no conflict

The rule itself is the pure function `conflicts_with`; ConflictDetector
narrows candidates through the store and applies it.
"""

import logging
from datetime import date, datetime, timedelta
from typing import AbstractSet, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from event_planner.config import Settings, get_settings
from event_planner.exceptions import SchedulingConflict
from event_planner.models.commitments import Commitment
from event_planner.models.templates import RecurringTemplate
from event_planner.services import queries
from event_planner.services.recurrence import Occurrence, expand_template

logger = logging.getLogger(__name__)


def ranges_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open interval overlap: [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def conflicts_with(
    existing: Commitment,
    start: datetime,
    end: Optional[datetime],
) -> bool:
    """
    Whether an existing commitment blocks the candidate range.

    Args:
        existing: Commitment already on the owner's calendar
        start: Candidate start
        end: Candidate end, None for an open-ended candidate

    Returns:
        True if `existing` is confirmed and conflicts with the candidate
    """
    if existing.provisional or existing.start_time is None:
        return False

    if end is None:
        if existing.end_time is None:
            return existing.start_time == start
        return existing.end_time > start

    if existing.end_time is None:
        return False
    return ranges_overlap(existing.start_time, existing.end_time, start, end)


def first_conflict(
    existing: Iterable[Commitment],
    start: datetime,
    end: Optional[datetime],
    exclude_id: Optional[UUID] = None,
) -> Optional[Commitment]:
    """First commitment in `existing` that conflicts with the candidate range."""
    for commitment in existing:
        if exclude_id is not None and commitment.id == exclude_id:
            continue
        if conflicts_with(commitment, start, end):
            return commitment
    return None


def _occurrences_overlap(mine: list[Occurrence], theirs: list[Occurrence]) -> bool:
    return any(
        ranges_overlap(a.start, a.end, b.start, b.end)
        for a in mine
        for b in theirs
    )


class ConflictDetector:
    """
    Store-backed conflict detection for one unit of work.

    No state is kept between calls beyond the session it reads through.
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        self._session = session
        self._settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Commitments
    # -------------------------------------------------------------------------

    def find_conflict(
        self,
        owner_id: UUID,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Commitment]:
        """
        Find a confirmed commitment of the owner that conflicts with a range.

        Args:
            owner_id: Owner whose calendar is checked
            start: Candidate start
            end: Candidate end, None for open-ended
            exclude_id: Commitment to ignore (the one being updated)

        Returns:
            The first conflicting commitment (by start), or None
        """
        candidates = queries.find_conflict_candidates(
            self._session, owner_id, start, end, exclude_commitment_id=exclude_id
        )
        conflict = first_conflict(candidates, start, end, exclude_id=exclude_id)
        if conflict is not None:
            logger.warning(
                f"Conflict detected with commitment {conflict.id} for owner {owner_id} "
                f"({start} - {end or 'open-ended'})"
            )
        return conflict

    def has_conflict(
        self,
        owner_id: UUID,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[UUID] = None,
    ) -> bool:
        return self.find_conflict(owner_id, start, end, exclude_id) is not None

    def ensure_no_conflict(
        self,
        owner_id: UUID,
        start: datetime,
        end: Optional[datetime] = None,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            SchedulingConflict: Carrying the conflicting commitment
        """
        conflict = self.find_conflict(owner_id, start, end, exclude_id)
        if conflict is not None:
            raise SchedulingConflict(conflict)

    # -------------------------------------------------------------------------
    # Recurring templates
    # -------------------------------------------------------------------------

    def find_template_conflicts(
        self,
        template: RecurringTemplate,
        zone_name: str,
    ) -> list[RecurringTemplate]:
        """
        Other confirmed templates of the owner whose occurrences overlap this one's.

        Dates are compared over the overlap of both active ranges, capped at
        `conflict_check_horizon_days` from its first day.

        Args:
            template: Template being created, updated or confirmed
            zone_name: Owner's zone

        Returns:
            Conflicting templates (empty when none)
        """
        horizon = self._settings.conflict_check_horizon_days
        candidates = queries.get_confirmed_templates_in_range(
            self._session,
            template.owner_id,
            template.start_date,
            template.end_date or self._settings.far_future_date,
            exclude_template_id=template.id,
        )
        logger.debug(f"Found {len(candidates)} template candidates for conflict checking")

        conflicts = []
        for other in candidates:
            if not self._may_share_days(template, other):
                logger.debug(f"Skipping template {other.id} - no shared recurrence days")
                continue

            overlap_start = max(template.start_date, other.start_date)
            ends = [d for d in (template.end_date, other.end_date) if d is not None]
            overlap_end = min(ends) if ends else None
            if overlap_end is not None and overlap_end < overlap_start:
                continue
            if overlap_end is None or (overlap_end - overlap_start).days > horizon:
                overlap_end = overlap_start + timedelta(days=horizon)

            mine = expand_template(template, overlap_start, overlap_end, zone_name)
            # One extra day catches the other template's midnight-crossing slot
            theirs = expand_template(other, overlap_start - timedelta(days=1), overlap_end, zone_name)
            if _occurrences_overlap(mine, theirs):
                conflicts.append(other)

        return conflicts

    def ensure_no_template_conflict(self, template: RecurringTemplate, zone_name: str) -> None:
        """
        Raises:
            SchedulingConflict: Carrying the first conflicting template
        """
        conflicts = self.find_template_conflicts(template, zone_name)
        if conflicts:
            logger.warning(
                f"Recurring template conflict detected for '{template.name}' ({template.id}) "
                f"with {len(conflicts)} templates"
            )
            raise SchedulingConflict(conflicts[0], [c.id for c in conflicts])

    def ensure_skip_days_removable(
        self,
        template: RecurringTemplate,
        days: AbstractSet[date],
        zone_name: str,
    ) -> None:
        """
        Check every date that un-skipping would reintroduce into the pattern.

        A reintroduced occurrence may not overlap a confirmed commitment
        (other than this template's own solidified instances) or another
        confirmed template's occurrence.

        Raises:
            SchedulingConflict: If any reintroduced date conflicts; nothing is removed
        """
        reintroduced = sorted(d for d in days if d in template.skip_days)
        occurrences = [
            occurrence
            for day in reintroduced
            for occurrence in expand_template(template, day, day, zone_name, include_skipped=True)
        ]
        logger.debug(f"Checking {len(occurrences)} reintroduced occurrences of template {template.id}")

        found: list = []
        for occurrence in occurrences:
            for commitment in queries.find_conflict_candidates(
                self._session, template.owner_id, occurrence.start, occurrence.end
            ):
                if commitment.recurring_template_id == template.id:
                    continue
                if conflicts_with(commitment, occurrence.start, occurrence.end):
                    found.append(commitment)

            others = queries.get_confirmed_templates_in_range(
                self._session,
                template.owner_id,
                occurrence.day - timedelta(days=1),
                occurrence.day + timedelta(days=1),
                exclude_template_id=template.id,
            )
            for other in others:
                theirs = expand_template(
                    other,
                    occurrence.day - timedelta(days=1),
                    occurrence.day + timedelta(days=1),
                    zone_name,
                )
                if _occurrences_overlap([occurrence], theirs):
                    found.append(other)

        if found:
            logger.warning(
                f"Skip day removal for template {template.id} conflicts with {len(found)} entries"
            )
            raise SchedulingConflict(found[0], [f.id for f in found])

    @staticmethod
    def _may_share_days(a: RecurringTemplate, b: RecurringTemplate) -> bool:
        # Midnight-crossing slots spill into the next weekday
        if a.crosses_midnight or b.crosses_midnight:
            return True
        days_a = a.recurrence_rule.parsed.days_of_week
        days_b = b.recurrence_rule.parsed.days_of_week
        return bool(days_a & days_b)
