"""
Pydantic input models for the lifecycle managers.

Patch models distinguish a field that was not sent (left untouched) from a
field explicitly sent as null (cleared) through `model_fields_set`.
"""

from datetime import date, datetime, time
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from event_planner.timeutils import get_zone


def _check_zone(v: Optional[str]) -> Optional[str]:
    if v is not None:
        get_zone(v)
    return v


class _PatchModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, explicit nulls included."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Commitments
# =============================================================================


class CommitmentCreate(BaseModel):
    """Input for creating a commitment (draft or confirmed)."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=200)
    start_time: Optional[datetime] = Field(None, description="Start instant (aware; naive is UTC)")
    end_time: Optional[datetime] = Field(None, description="End instant; omit for open-ended")
    timezone: Optional[str] = Field(None, description="Zone the times were authored in; defaults to the owner's")
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    provisional: bool = Field(False, description="Create as a draft")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_zone(v)


class CommitmentUpdate(_PatchModel):
    """Patch for a commitment. Omitted fields stay as they are."""

    name: Optional[str] = Field(None, max_length=200)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    timezone: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    completed: Optional[bool] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_zone(v)

    @field_validator("completed")
    @classmethod
    def validate_completed(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("completed cannot be cleared")
        return v


# =============================================================================
# Recurring templates
# =============================================================================


class RecurringTemplateCreate(BaseModel):
    """Input for creating a recurring template (draft or confirmed)."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=200)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = Field(None, description="Omit to recur indefinitely")
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    recurrence_rule: Optional[str] = Field(
        None,
        description="Rule text, e.g. 'WEEKLY:MONDAY,WEDNESDAY' or 'FREQ=MONTHLY;BYDAY=2TU'",
        examples=["WEEKLY:MONDAY,WEDNESDAY", "MONTHLY:2:TUESDAY", "FREQ=DAILY;INTERVAL=2"],
    )
    skip_days: set[date] = Field(default_factory=set)
    provisional: bool = Field(False, description="Create as a draft")


class RecurringTemplateUpdate(_PatchModel):
    """Patch for a recurring template. Omitted fields stay as they are."""

    name: Optional[str] = Field(None, max_length=200)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    category_id: Optional[UUID] = None
    recurrence_rule: Optional[str] = None
