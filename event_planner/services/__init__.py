"""
Service layer for the Event Planner engine.

Provides business logic and data access patterns for:
- Recurrence expansion (dateutil rrule handling)
- Store queries (owners, commitments, templates)
- Conflict detection
- Commitment and recurring template lifecycles
- Solidification of templates into commitments
"""

from event_planner.services.recurrence import (
    Occurrence,
    build_rrule,
    expand_recurrence,
    expand_template,
    next_occurrence,
    occurs_on,
)

from event_planner.services import queries

from event_planner.services.clock import (
    ClockProvider,
    FixedClockProvider,
    SystemClockProvider,
)

from event_planner.services.time_tracking import (
    CommitmentChangeContext,
    LoggingTimeTracker,
    TimeTracker,
)

from event_planner.services.owners import UNCATEGORIZED_NAME, create_owner

from event_planner.services.categories import (
    get_owned_category,
    resolve_category_id,
)

from event_planner.services.conflicts import (
    ConflictDetector,
    conflicts_with,
    first_conflict,
    ranges_overlap,
)

from event_planner.services.schemas import (
    CommitmentCreate,
    CommitmentUpdate,
    RecurringTemplateCreate,
    RecurringTemplateUpdate,
)

from event_planner.services.commitments import CommitmentManager
from event_planner.services.templates import RecurringTemplateManager, TemplateUpdateResult
from event_planner.services.solidifier import Solidifier, SolidifyResult

__all__ = [
    # Recurrence
    "Occurrence",
    "build_rrule",
    "expand_recurrence",
    "expand_template",
    "next_occurrence",
    "occurs_on",
    # Queries
    "queries",
    # Collaborators
    "ClockProvider",
    "FixedClockProvider",
    "SystemClockProvider",
    "CommitmentChangeContext",
    "LoggingTimeTracker",
    "TimeTracker",
    "create_owner",
    "UNCATEGORIZED_NAME",
    "get_owned_category",
    "resolve_category_id",
    # Conflicts
    "ConflictDetector",
    "conflicts_with",
    "first_conflict",
    "ranges_overlap",
    # Inputs
    "CommitmentCreate",
    "CommitmentUpdate",
    "RecurringTemplateCreate",
    "RecurringTemplateUpdate",
    # Lifecycle
    "CommitmentManager",
    "RecurringTemplateManager",
    "TemplateUpdateResult",
    "Solidifier",
    "SolidifyResult",
]
