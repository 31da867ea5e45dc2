"""
Commitment lifecycle management.

Creation, update, confirmation and deletion of single commitments with
two validation tiers:
- DRAFT: nothing is validated and conflicts are not checked
- CONFIRMED: required fields, start before end, category ownership and
  conflict detection

Every check runs against the proposed values before anything is written,
so a rejected operation leaves the commitment untouched. Access control is
the caller's job; the owner is assumed to be authorised already.
"""

import logging
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from event_planner.exceptions import (
    AlreadyConfirmed,
    CommitmentNotFound,
    ErrorCode,
    InvalidTimeRange,
    MissingRequiredField,
    OwnerNotFound,
)
from event_planner.models.commitments import Commitment
from event_planner.models.lifecycle import LifecycleState
from event_planner.models.owners import Owner
from event_planner.services import queries
from event_planner.services.categories import get_owned_category
from event_planner.services.clock import ClockProvider
from event_planner.services.conflicts import ConflictDetector
from event_planner.services.schemas import CommitmentCreate, CommitmentUpdate
from event_planner.services.time_tracking import (
    CommitmentChangeContext,
    LoggingTimeTracker,
    TimeTracker,
)
from event_planner.timeutils import duration_minutes, to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitmentValues:
    """Field values of a commitment, used to validate a change before applying it."""

    name: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    start_timezone: Optional[str] = None
    end_timezone: Optional[str] = None
    category_id: Optional[UUID] = None
    provisional: bool = True
    completed: bool = False

    @classmethod
    def of(cls, commitment: Commitment) -> "CommitmentValues":
        return cls(**{f.name: getattr(commitment, f.name) for f in fields(cls)})

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.of(self.provisional)

    @property
    def duration_minutes(self) -> Optional[int]:
        return duration_minutes(self.start_time, self.end_time)

    def apply_to(self, commitment: Commitment) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if getattr(commitment, f.name) != value:
                setattr(commitment, f.name, value)


def validate_commitment_fields(values: CommitmentValues) -> None:
    """
    Full validation for a confirmed commitment.

    Raises:
        MissingRequiredField: For the first missing of name, start, end, category
        InvalidTimeRange: If start is not strictly before end
    """
    if values.name is None or not values.name.strip():
        raise MissingRequiredField("name")
    if values.start_time is None:
        raise MissingRequiredField("start_time")
    if values.end_time is None:
        raise MissingRequiredField("end_time")
    if values.category_id is None:
        raise MissingRequiredField("category_id")
    if not values.start_time < values.end_time:
        raise InvalidTimeRange(values.start_time, values.end_time)


class CommitmentManager:
    """
    Lifecycle manager for commitments.

    Holds no state between calls beyond its collaborators: the session of
    the current unit of work, the injected clock and the time tracker.
    """

    def __init__(
        self,
        session: Session,
        clock: ClockProvider,
        time_tracker: Optional[TimeTracker] = None,
        detector: Optional[ConflictDetector] = None,
    ):
        self._session = session
        self._clock = clock
        self._time_tracker = time_tracker or LoggingTimeTracker()
        self._detector = detector or ConflictDetector(session)
        self._validators = {
            LifecycleState.DRAFT: self._validate_draft,
            LifecycleState.CONFIRMED: self._validate_confirmed,
        }

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, commitment_id: UUID) -> Commitment:
        """
        Raises:
            CommitmentNotFound: If no commitment has this id
        """
        commitment = queries.get_commitment_by_id(self._session, commitment_id)
        if commitment is None:
            raise CommitmentNotFound(commitment_id)
        return commitment

    def list_in_range(
        self,
        owner_id: UUID,
        start: datetime,
        end: datetime,
        include_provisional: bool = True,
    ) -> Sequence[Commitment]:
        return queries.get_commitments_in_range(
            self._session, owner_id, to_utc(start), to_utc(end), include_provisional
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, owner_id: UUID, data: CommitmentCreate) -> Commitment:
        """
        Create a commitment.

        Drafts are stored as given. Confirmed commitments are validated and
        checked for conflicts first (no self-exclusion, the row is new).

        Args:
            owner_id: Owner of the new commitment
            data: Commitment fields

        Returns:
            The persisted (flushed) commitment

        Raises:
            OwnerNotFound, MissingRequiredField, InvalidTimeRange,
            CategoryNotFound, CategoryOwnershipError, SchedulingConflict
        """
        owner = self._lock_owner(owner_id)
        zone = data.timezone or owner.timezone

        commitment = Commitment(
            owner_id=owner.id,
            name=data.name,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            start_timezone=zone if data.start_time is not None else None,
            end_timezone=zone if data.end_time is not None else None,
            category_id=data.category_id,
            provisional=data.provisional,
            completed=False,
        )
        return self._insert(commitment, owner)

    def create_commitment(self, commitment: Commitment) -> Commitment:
        """
        Persist an already-built commitment through the same validation tiers.

        Used by solidification, which prepares the entity itself.
        """
        owner = self._lock_owner(commitment.owner_id)
        return self._insert(commitment, owner)

    def update(self, commitment_id: UUID, patch: CommitmentUpdate) -> Commitment:
        """
        Apply a patch to a commitment.

        Validation follows the commitment's state after the patch, with the
        commitment itself excluded from conflict detection. Completing a
        commitment (false -> true) requires an end that is not after "now"
        in the owner's zone. The time tracker is notified whenever
        completion or category changes.

        Args:
            commitment_id: Commitment to update
            patch: Fields to change; omitted fields are left alone

        Returns:
            The updated commitment

        Raises:
            CommitmentNotFound, MissingRequiredField, InvalidTimeRange,
            CategoryNotFound, CategoryOwnershipError, SchedulingConflict
        """
        commitment = self.get(commitment_id)
        owner = self._lock_owner(commitment.owner_id)
        logger.info(f"Updating commitment {commitment.id}")

        before = CommitmentValues.of(commitment)
        after = self._merge(before, patch.changes(), owner.timezone)
        if after == before:
            logger.debug(f"Commitment {commitment.id} unchanged")
            return commitment

        if after.category_id is not None and after.category_id != before.category_id:
            get_owned_category(self._session, owner.id, after.category_id)

        if after.completed and not before.completed:
            self._validate_completion(after, owner.timezone)

        self._validators[after.state](owner, after, exclude_id=commitment.id)

        after.apply_to(commitment)
        self._session.flush()

        if after.completed != before.completed or after.category_id != before.category_id:
            self._time_tracker.record_change(
                CommitmentChangeContext(
                    owner_id=owner.id,
                    old_category_id=before.category_id,
                    new_category_id=after.category_id,
                    old_start=before.start_time,
                    new_start=after.start_time,
                    old_duration_minutes=before.duration_minutes,
                    new_duration_minutes=after.duration_minutes,
                    zone=owner.timezone,
                    was_completed=before.completed,
                    is_completed=after.completed,
                )
            )

        return commitment

    def confirm(self, commitment_id: UUID) -> Commitment:
        """
        Turn a draft into a confirmed commitment.

        Raises:
            AlreadyConfirmed: If the commitment is not provisional
            MissingRequiredField, InvalidTimeRange, CategoryOwnershipError,
            SchedulingConflict: The commitment stays a draft
        """
        commitment = self.get(commitment_id)
        if not commitment.provisional:
            raise AlreadyConfirmed(commitment_id)

        owner = self._lock_owner(commitment.owner_id)
        logger.info(f"Confirming commitment {commitment.id}")

        confirmed = replace(CommitmentValues.of(commitment), provisional=False)
        # A draft was invisible to conflict checks, nothing to exclude
        self._validate_confirmed(owner, confirmed, exclude_id=None)

        commitment.provisional = False
        self._session.flush()
        return commitment

    def delete(self, commitment_id: UUID) -> None:
        """
        Raises:
            CommitmentNotFound: If no commitment has this id
        """
        commitment = self.get(commitment_id)
        logger.info(f"Deleting commitment {commitment.id}")
        self._session.delete(commitment)
        self._session.flush()

    def delete_drafts(self, owner_id: UUID) -> int:
        """Delete all provisional commitments of an owner."""
        self._lock_owner(owner_id)
        deleted = queries.delete_provisional_commitments(self._session, owner_id)
        logger.info(f"Deleted {deleted} draft commitments for owner {owner_id}")
        return deleted

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lock_owner(self, owner_id: UUID) -> Owner:
        owner = queries.lock_owner(self._session, owner_id)
        if owner is None:
            raise OwnerNotFound(owner_id)
        return owner

    def _insert(self, commitment: Commitment, owner: Owner) -> Commitment:
        values = CommitmentValues.of(commitment)
        if values.state is LifecycleState.DRAFT:
            logger.info(f"Creating draft commitment for owner {owner.id}")
        else:
            logger.info(f"Creating commitment '{values.name}' for owner {owner.id}")

        self._validators[values.state](owner, values, exclude_id=None)

        self._session.add(commitment)
        self._session.flush()
        logger.info(f"Commitment created with ID {commitment.id}")
        return commitment

    def _validate_draft(self, owner: Owner, values: CommitmentValues, exclude_id: Optional[UUID]) -> None:
        """Drafts are intentionally permissive."""

    def _validate_confirmed(self, owner: Owner, values: CommitmentValues, exclude_id: Optional[UUID]) -> None:
        validate_commitment_fields(values)
        get_owned_category(self._session, owner.id, values.category_id)
        self._detector.ensure_no_conflict(owner.id, values.start_time, values.end_time, exclude_id)

    def _validate_completion(self, values: CommitmentValues, zone: str) -> None:
        if values.end_time is None:
            raise InvalidTimeRange(values.start_time, None, ErrorCode.COMPLETION_WITHOUT_END)
        now = self._clock.now(zone)
        if values.end_time > now:
            raise InvalidTimeRange(values.end_time, now, ErrorCode.COMPLETION_IN_FUTURE)

    @staticmethod
    def _merge(before: CommitmentValues, changes: dict[str, Any], owner_zone: str) -> CommitmentValues:
        zone = changes.pop("timezone", None)
        updates: dict[str, Any] = {}

        for key in ("name", "description", "category_id", "completed"):
            if key in changes:
                updates[key] = changes[key]

        if "start_time" in changes:
            updates["start_time"] = to_utc(changes["start_time"])
            updates["start_timezone"] = (
                (zone or before.start_timezone or owner_zone) if changes["start_time"] is not None else None
            )
        if "end_time" in changes:
            updates["end_time"] = to_utc(changes["end_time"])
            updates["end_timezone"] = (
                (zone or before.end_timezone or owner_zone) if changes["end_time"] is not None else None
            )

        return replace(before, **updates)
