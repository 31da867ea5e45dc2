"""
Time-tracking collaborator contract.

The analytics aggregator that buckets completed-commitment durations lives
outside this engine. The lifecycle manager only tells it what changed.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class CommitmentChangeContext(BaseModel):
    """Before/after snapshot of a commitment's completion and category."""

    model_config = ConfigDict(frozen=True)

    owner_id: UUID
    old_category_id: Optional[UUID] = None
    new_category_id: Optional[UUID] = None
    old_start: Optional[datetime] = None
    new_start: Optional[datetime] = None
    old_duration_minutes: Optional[int] = None
    new_duration_minutes: Optional[int] = None
    zone: str = Field(..., description="Owner's IANA zone")
    was_completed: bool = False
    is_completed: bool = False

    @property
    def completion_changed(self) -> bool:
        return self.was_completed != self.is_completed

    @property
    def category_changed(self) -> bool:
        return self.old_category_id != self.new_category_id


class TimeTracker(Protocol):
    """Receives change contexts; its return value is ignored."""

    def record_change(self, context: CommitmentChangeContext) -> None:
        ...


class LoggingTimeTracker:
    """Default tracker: logs the change and does nothing else."""

    def record_change(self, context: CommitmentChangeContext) -> None:
        logger.info(
            f"Time tracking change for owner {context.owner_id}: "
            f"completed {context.was_completed}->{context.is_completed}, "
            f"category {context.old_category_id}->{context.new_category_id}"
        )
