"""
Owner setup.

Account management lives outside the engine; this only creates the rows
the engine depends on: the owner with a zone, and the owner's default
"Uncategorized" category.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from event_planner.config import get_settings
from event_planner.models.owners import Category, Owner
from event_planner.timeutils import get_zone

logger = logging.getLogger(__name__)

UNCATEGORIZED_NAME = "Uncategorized"


def create_owner(session: Session, username: str, timezone: Optional[str] = None) -> Owner:
    """
    Create an owner together with its uncategorized category.

    Args:
        session: Database session
        username: Unique username
        timezone: IANA zone; defaults to Settings.default_timezone

    Returns:
        The flushed owner

    Raises:
        ValueError: If the zone is unknown
    """
    zone = timezone or get_settings().default_timezone
    get_zone(zone)

    owner = Owner(username=username, timezone=zone)
    owner.categories.append(Category(name=UNCATEGORIZED_NAME, is_uncategorized=True))
    session.add(owner)
    session.flush()

    logger.info(f"Created owner '{username}' ({owner.id}) in {zone}")
    return owner
