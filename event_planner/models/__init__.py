"""
SQLAlchemy models for the Event Planner engine.

This module exports all database models for easy importing and makes sure
every table is registered on Base.metadata.
"""

from event_planner.models.base import Base, BaseModel, GUID, UTCDateTime, get_json_type
from event_planner.models.lifecycle import LifecycleState

from event_planner.models.owners import Owner, Category
from event_planner.models.templates import RecurringTemplate
from event_planner.models.commitments import Commitment

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "GUID",
    "UTCDateTime",
    "get_json_type",
    "LifecycleState",
    # Owner models
    "Owner",
    "Category",
    # Scheduling models
    "RecurringTemplate",
    "Commitment",
]
