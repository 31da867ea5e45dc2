"""
Query service for commitments, templates and owners.

Provides the persistence-store side of the engine:
- Lookup by id
- Owner row locks (one in-flight write per owner)
- Time-range filtering of confirmed commitments and templates
- Conflict candidate narrowing
- Propagation targets
"""

from datetime import date, datetime, timedelta
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from event_planner.models.commitments import Commitment
from event_planner.models.owners import Category, Owner
from event_planner.models.templates import RecurringTemplate


# =============================================================================
# Owner Queries
# =============================================================================


def lock_owner(session: Session, owner_id: UUID) -> Optional[Owner]:
    """
    Fetch an owner with a row lock held until the unit of work ends.

    Serialises validate -> conflict-check -> persist sequences per owner.
    SQLite has no row locks; the clause is dropped there.

    Args:
        session: Database session
        owner_id: Owner to lock

    Returns:
        Owner or None
    """
    stmt = select(Owner).where(Owner.id == owner_id).with_for_update()
    return session.scalar(stmt)


def get_uncategorized_category(session: Session, owner_id: UUID) -> Optional[Category]:
    stmt = select(Category).where(
        and_(
            Category.owner_id == owner_id,
            Category.is_uncategorized.is_(True),
        )
    )
    return session.scalar(stmt)


# =============================================================================
# Commitment Queries
# =============================================================================


def get_commitment_by_id(session: Session, commitment_id: UUID) -> Optional[Commitment]:
    return session.get(Commitment, commitment_id)


def get_commitments_in_range(
    session: Session,
    owner_id: UUID,
    start: datetime,
    end: datetime,
    include_provisional: bool = True,
) -> Sequence[Commitment]:
    """
    Get an owner's commitments that overlap a time range.

    Open-ended commitments are included when they start before `end`.

    Args:
        session: Database session
        owner_id: Owner to query
        start: Range start (inclusive)
        end: Range end (exclusive)
        include_provisional: Include drafts (drafts without a start are never returned)

    Returns:
        Commitments ordered by start, then end
    """
    conditions = [
        Commitment.owner_id == owner_id,
        Commitment.start_time < end,
        or_(Commitment.end_time > start, Commitment.end_time.is_(None)),
    ]
    if not include_provisional:
        conditions.append(Commitment.provisional.is_(False))

    stmt = (
        select(Commitment)
        .where(and_(*conditions))
        .order_by(Commitment.start_time, Commitment.end_time)
    )
    return session.scalars(stmt).all()


def get_confirmed_commitments_in_window(
    session: Session,
    owner_id: UUID,
    start: datetime,
    end: datetime,
) -> Sequence[Commitment]:
    """
    Confirmed timed commitments overlapping [start, end).

    Used by solidification to test candidates in memory.
    """
    stmt = (
        select(Commitment)
        .where(
            and_(
                Commitment.owner_id == owner_id,
                Commitment.provisional.is_(False),
                Commitment.start_time < end,
                Commitment.end_time > start,
            )
        )
        .order_by(Commitment.start_time, Commitment.end_time)
    )
    return session.scalars(stmt).all()


def find_conflict_candidates(
    session: Session,
    owner_id: UUID,
    start: datetime,
    end: Optional[datetime],
    exclude_commitment_id: Optional[UUID] = None,
) -> Sequence[Commitment]:
    """
    Narrow the owner's confirmed commitments to those that may conflict.

    Timed range: existing.start < end and existing.end > start.
    Open-ended range (end is None): existing.end > start, or an open-ended
    existing commitment with exactly the same start.

    Args:
        session: Database session
        owner_id: Owner whose commitments are checked
        start: Candidate start
        end: Candidate end, None for open-ended
        exclude_commitment_id: Commitment to exclude (for updates)

    Returns:
        Candidate commitments ordered by start
    """
    conditions = [
        Commitment.owner_id == owner_id,
        Commitment.provisional.is_(False),
    ]

    if end is None:
        conditions.append(
            or_(
                Commitment.end_time > start,
                and_(Commitment.end_time.is_(None), Commitment.start_time == start),
            )
        )
    else:
        conditions.extend([
            Commitment.start_time < end,
            Commitment.end_time > start,
        ])

    if exclude_commitment_id:
        conditions.append(Commitment.id != exclude_commitment_id)

    stmt = (
        select(Commitment)
        .where(and_(*conditions))
        .order_by(Commitment.start_time)
    )
    return session.scalars(stmt).all()


def get_template_commitments_in_window(
    session: Session,
    template_id: UUID,
    start: datetime,
    end: datetime,
) -> Sequence[Commitment]:
    """
    Commitments already solidified from a template around a window.

    The range is widened by a day on each side so matching by local start
    date never misses an instance near the window edges.
    """
    stmt = (
        select(Commitment)
        .where(
            and_(
                Commitment.recurring_template_id == template_id,
                Commitment.start_time >= start - timedelta(days=1),
                Commitment.start_time < end + timedelta(days=1),
            )
        )
        .order_by(Commitment.start_time)
    )
    return session.scalars(stmt).all()


def get_future_commitments_for_template(
    session: Session,
    template_id: UUID,
    now: datetime,
) -> Sequence[Commitment]:
    """
    Solidified commitments of a template that start after `now` and are not completed.

    Args:
        session: Database session
        template_id: Originating template
        now: Current instant in the owner's zone

    Returns:
        Commitments ordered by start
    """
    stmt = (
        select(Commitment)
        .where(
            and_(
                Commitment.recurring_template_id == template_id,
                Commitment.start_time > now,
                Commitment.completed.is_(False),
            )
        )
        .order_by(Commitment.start_time)
    )
    return session.scalars(stmt).all()


def delete_provisional_commitments(session: Session, owner_id: UUID) -> int:
    """
    Delete every draft commitment of an owner.

    Returns:
        Number of rows deleted
    """
    stmt = delete(Commitment).where(
        and_(
            Commitment.owner_id == owner_id,
            Commitment.provisional.is_(True),
        )
    )
    result = session.execute(stmt, execution_options={"synchronize_session": "fetch"})
    return result.rowcount or 0


# =============================================================================
# Recurring Template Queries
# =============================================================================


def get_template_by_id(session: Session, template_id: UUID) -> Optional[RecurringTemplate]:
    return session.get(RecurringTemplate, template_id)


def get_confirmed_templates_in_range(
    session: Session,
    owner_id: UUID,
    from_date: date,
    to_date: date,
    exclude_template_id: Optional[UUID] = None,
) -> Sequence[RecurringTemplate]:
    """
    Confirmed templates whose active date range intersects [from_date, to_date].

    Args:
        session: Database session
        owner_id: Owner to query
        from_date: First local date (inclusive)
        to_date: Last local date (inclusive)
        exclude_template_id: Template to exclude (for updates)

    Returns:
        Templates ordered by start date, then id
    """
    conditions = [
        RecurringTemplate.owner_id == owner_id,
        RecurringTemplate.provisional.is_(False),
        RecurringTemplate.start_date <= to_date,
        or_(RecurringTemplate.end_date.is_(None), RecurringTemplate.end_date >= from_date),
    ]
    if exclude_template_id:
        conditions.append(RecurringTemplate.id != exclude_template_id)

    stmt = (
        select(RecurringTemplate)
        .where(and_(*conditions))
        .order_by(RecurringTemplate.start_date, RecurringTemplate.id)
    )
    return session.scalars(stmt).all()


def get_provisional_templates(session: Session, owner_id: UUID) -> Sequence[RecurringTemplate]:
    stmt = (
        select(RecurringTemplate)
        .where(
            and_(
                RecurringTemplate.owner_id == owner_id,
                RecurringTemplate.provisional.is_(True),
            )
        )
        .order_by(RecurringTemplate.created_at)
    )
    return session.scalars(stmt).all()
