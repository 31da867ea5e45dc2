"""
Commitment model.

Entities:
- Commitment: A single scheduled occupation of time, timed or open-ended
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from event_planner.models.base import BaseModel
from event_planner.models.lifecycle import LifecycleState
from event_planner.timeutils import duration_minutes, to_utc

if TYPE_CHECKING:
    from event_planner.models.templates import RecurringTemplate


class Commitment(BaseModel):
    """
    A single scheduled event.

    Commitments can be:
    - Provisional (draft): any field may be missing, ignored by conflict checks
    - Confirmed: name, start, end and category present, start before end
    - Open-ended: no end instant, the owner is "currently in" the activity
    - Solidified from a recurring template (recurring_template_id set once)

    Instants are stored in UTC, truncated to the minute. The zone they were
    authored in is kept next to them for display round-trips.
    """

    __tablename__ = "commitments"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owner of this commitment"
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        doc="Commitment name"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Free-form description"
    )

    # Timing
    start_time: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        doc="Start instant (UTC)"
    )

    end_time: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        doc="End instant (UTC); NULL means open-ended"
    )

    start_timezone: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        doc="Zone the start was authored in"
    )

    end_timezone: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        doc="Zone the end was authored in"
    )

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id"),
        nullable=True,
        doc="Category (label) of this commitment"
    )

    recurring_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("recurring_templates.id", ondelete="SET NULL"),
        nullable=True,
        doc="Template this commitment was solidified from"
    )

    # Status
    provisional: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Draft (True) or confirmed (False)"
    )

    completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether the owner marked this commitment done"
    )

    # One-directional: templates never load their commitments
    recurring_template: Mapped[Optional["RecurringTemplate"]] = relationship(
        "RecurringTemplate",
        foreign_keys=[recurring_template_id],
        doc="Originating recurring template"
    )

    __table_args__ = (
        Index("idx_commitment_owner", "owner_id"),
        Index("idx_commitment_template", "recurring_template_id"),
        Index("idx_commitment_owner_range", "owner_id", "provisional", "start_time", "end_time"),
    )

    @validates("start_time", "end_time")
    def _normalise_instant(self, key, value):
        return to_utc(value)

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.of(self.provisional)

    @property
    def is_open_ended(self) -> bool:
        return self.start_time is not None and self.end_time is None

    @property
    def duration_minutes(self) -> Optional[int]:
        return duration_minutes(self.start_time, self.end_time)

    def __repr__(self) -> str:
        return f"<Commitment(name='{self.name}', start='{self.start_time}', provisional={self.provisional})>"
