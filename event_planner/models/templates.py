"""
RecurringTemplate model.

Entities:
- RecurringTemplate: A pattern that generates many Commitments over time
"""

import uuid
from datetime import date, datetime, time
from typing import Iterable, Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, validates

from event_planner.models.base import BaseModel, get_json_type
from event_planner.models.lifecycle import LifecycleState
from event_planner.recurrence.rules import RecurrenceRule
from event_planner.timeutils import occurrence_bounds, truncate_time


class RecurringTemplate(BaseModel):
    """
    Recurring pattern with a local time slot.

    Key features:
    - Local start/end time-of-day (an end at or before the start crosses midnight)
    - Start date and optional end date (NULL recurs indefinitely)
    - Recurrence rule persisted as its canonical summary
    - Skip days suppress individual dates of the pattern

    Drafts may hold un-parsed rule text in recurrence_summary; it is
    canonicalised when the template is confirmed.
    """

    __tablename__ = "recurring_templates"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owner of this template"
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        doc="Template name, copied to solidified commitments"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Description, copied to solidified commitments"
    )

    start_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
        doc="Local start time-of-day"
    )

    end_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
        doc="Local end time-of-day"
    )

    start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="First date the pattern may fire"
    )

    end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Last date the pattern may fire (NULL = indefinite)"
    )

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id"),
        nullable=True,
        doc="Category applied to solidified commitments"
    )

    recurrence_summary: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Canonical recurrence rule summary (raw text while a draft)"
    )

    skip_days_raw: Mapped[list] = mapped_column(
        "skip_days",
        get_json_type(),
        nullable=False,
        default=list,
        doc="ISO dates on which the pattern is suppressed"
    )

    provisional: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Draft (True) or confirmed (False)"
    )

    __table_args__ = (
        Index("idx_template_owner", "owner_id"),
        Index("idx_template_owner_range", "owner_id", "provisional", "start_date", "end_date"),
    )

    @validates("start_time", "end_time")
    def _truncate_time(self, key, value):
        return truncate_time(value)

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.of(self.provisional)

    @property
    def recurrence_rule(self) -> Optional[RecurrenceRule]:
        if not self.recurrence_summary:
            return None
        return RecurrenceRule(self.recurrence_summary)

    @recurrence_rule.setter
    def recurrence_rule(self, rule: Optional[RecurrenceRule]) -> None:
        self.recurrence_summary = rule.summary if rule is not None else None

    @property
    def skip_days(self) -> frozenset[date]:
        return frozenset(date.fromisoformat(d) for d in (self.skip_days_raw or []))

    @skip_days.setter
    def skip_days(self, days: Iterable[date]) -> None:
        # Reassign so the JSON column registers the change
        self.skip_days_raw = sorted(d.isoformat() for d in set(days))

    def add_skip_days(self, days: Iterable[date]) -> None:
        self.skip_days = self.skip_days | set(days)

    def remove_skip_days(self, days: Iterable[date]) -> None:
        self.skip_days = self.skip_days - set(days)

    @property
    def crosses_midnight(self) -> bool:
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time <= self.start_time
        )

    def occurrence_bounds(self, day: date, zone_name: str) -> tuple[datetime, datetime]:
        """UTC start/end of the occurrence that starts on `day` in the owner's zone."""
        return occurrence_bounds(day, self.start_time, self.end_time, zone_name)

    def __repr__(self) -> str:
        return f"<RecurringTemplate(name='{self.name}', rule='{self.recurrence_summary}', provisional={self.provisional})>"
