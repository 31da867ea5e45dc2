"""
Solidification of recurring templates into concrete commitments.

For one owner and one time window every confirmed template is expanded,
each occurrence that is not yet materialized and fits entirely inside the
window becomes a commitment. Occurrences that collide with an existing
confirmed commitment are created as drafts instead of being dropped.

Running the same window twice creates nothing the second time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from event_planner.exceptions import OwnerNotFound
from event_planner.models.commitments import Commitment
from event_planner.models.templates import RecurringTemplate
from event_planner.services import queries
from event_planner.services.categories import resolve_category_id
from event_planner.services.clock import ClockProvider
from event_planner.services.commitments import CommitmentManager
from event_planner.services.conflicts import first_conflict
from event_planner.services.recurrence import expand_template
from event_planner.timeutils import local_date, to_utc

logger = logging.getLogger(__name__)


@dataclass
class SolidifyResult:
    """Outcome of one solidification pass."""

    confirmed: list[Commitment] = field(default_factory=list)
    provisional: list[Commitment] = field(default_factory=list)
    skipped_existing: int = 0
    skipped_boundary: int = 0

    @property
    def created(self) -> list[Commitment]:
        return sorted(self.confirmed + self.provisional, key=lambda c: c.start_time)

    @property
    def created_count(self) -> int:
        return len(self.confirmed) + len(self.provisional)


class Solidifier:
    """
    Materializes template occurrences for a window.

    Creation goes through CommitmentManager, so confirmed occurrences are
    validated exactly like user-created commitments.
    """

    def __init__(
        self,
        session: Session,
        clock: ClockProvider,
        commitment_manager: Optional[CommitmentManager] = None,
    ):
        self._session = session
        self._commitments = commitment_manager or CommitmentManager(session, clock)

    def solidify(
        self,
        owner_id: UUID,
        window_start: datetime,
        window_end: datetime,
        owner_zone: str,
    ) -> SolidifyResult:
        """
        Create commitments for every confirmed template occurrence in a window.

        An occurrence is skipped when the template already has an instance
        on that local date, when it starts before `window_start`, or when it
        does not end strictly before `window_end`. Any error aborts the pass.

        Args:
            owner_id: Owner whose templates are solidified
            window_start: Window start instant
            window_end: Window end instant
            owner_zone: IANA zone used for local dates and times of day

        Returns:
            SolidifyResult with the created commitments and skip counts

        Raises:
            OwnerNotFound: If the owner does not exist
        """
        window_start = to_utc(window_start)
        window_end = to_utc(window_end)
        if queries.lock_owner(self._session, owner_id) is None:
            raise OwnerNotFound(owner_id)

        result = SolidifyResult()
        if window_end <= window_start:
            return result

        from_date = local_date(window_start, owner_zone)
        to_date = local_date(window_end, owner_zone)
        templates = queries.get_confirmed_templates_in_range(self._session, owner_id, from_date, to_date)
        logger.info(
            f"Solidifying {len(templates)} recurring templates for owner {owner_id} "
            f"({window_start} - {window_end})"
        )

        confirmed = list(
            queries.get_confirmed_commitments_in_window(self._session, owner_id, window_start, window_end)
        )

        for template in templates:
            self._solidify_template(template, window_start, window_end, owner_zone, confirmed, result)

        logger.info(
            f"Solidified {len(result.confirmed)} confirmed and {len(result.provisional)} provisional "
            f"commitments for owner {owner_id}"
        )
        return result

    def _solidify_template(
        self,
        template: RecurringTemplate,
        window_start: datetime,
        window_end: datetime,
        zone: str,
        confirmed: list[Commitment],
        result: SolidifyResult,
    ) -> None:
        materialized = {
            local_date(c.start_time, zone)
            for c in queries.get_template_commitments_in_window(
                self._session, template.id, window_start, window_end
            )
            if c.start_time is not None
        }

        category_id = resolve_category_id(self._session, template.owner_id, template.category_id)
        occurrences = expand_template(
            template,
            local_date(window_start, zone),
            local_date(window_end, zone),
            zone,
        )
        logger.debug(f"Template {template.id} has {len(occurrences)} occurrences in window")

        for occurrence in occurrences:
            if occurrence.day in materialized:
                result.skipped_existing += 1
                continue
            if occurrence.start < window_start or not occurrence.end < window_end:
                result.skipped_boundary += 1
                continue

            conflict = first_conflict(confirmed, occurrence.start, occurrence.end)
            if conflict is not None:
                logger.warning(
                    f"Occurrence of template {template.id} on {occurrence.day} conflicts with "
                    f"commitment {conflict.id}; creating as draft"
                )

            commitment = self._commitments.create_commitment(
                Commitment(
                    owner_id=template.owner_id,
                    name=template.name,
                    description=template.description,
                    start_time=occurrence.start,
                    end_time=occurrence.end,
                    start_timezone=zone,
                    end_timezone=zone,
                    category_id=category_id,
                    recurring_template_id=template.id,
                    provisional=conflict is not None,
                    completed=False,
                )
            )
            materialized.add(occurrence.day)

            if commitment.provisional:
                result.provisional.append(commitment)
            else:
                confirmed.append(commitment)
                result.confirmed.append(commitment)
