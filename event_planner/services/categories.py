"""
Category lookup.

Resolves category ids and checks that the owner actually owns them.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from event_planner.exceptions import CategoryNotFound, CategoryOwnershipError
from event_planner.models.owners import Category
from event_planner.services import queries


def get_owned_category(session: Session, owner_id: UUID, category_id: UUID) -> Category:
    """
    Get a category and validate its owner.

    Raises:
        CategoryNotFound: If no category has this id
        CategoryOwnershipError: If the category belongs to someone else
    """
    category = session.get(Category, category_id)
    if category is None:
        raise CategoryNotFound(category_id)
    if category.owner_id != owner_id:
        raise CategoryOwnershipError(category_id, owner_id)
    return category


def resolve_category_id(
    session: Session,
    owner_id: UUID,
    category_id: Optional[UUID],
) -> Optional[UUID]:
    """
    Validate an explicit category, or fall back to the owner's uncategorized one.

    Returns:
        The category id to store (None only if the owner has no default category)
    """
    if category_id is not None:
        return get_owned_category(session, owner_id, category_id).id

    default = queries.get_uncategorized_category(session, owner_id)
    return default.id if default else None
