"""
Owner and Category models.

Entities:
- Owner: The person whose commitments the engine schedules
- Category: A label attached to commitments and templates

Account management and label taxonomy live outside this engine; these
tables only hold what the engine reads (zone, default category).
"""

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from event_planner.models.base import BaseModel


class Owner(BaseModel):
    """
    Owner of commitments and recurring templates.

    The owner's timezone decides local dates for expansion, solidification
    and "now" comparisons.
    """

    __tablename__ = "owners"

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        doc="Unique username"
    )

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="IANA timezone name (e.g., America/Los_Angeles)"
    )

    categories: Mapped[list["Category"]] = relationship(
        "Category",
        back_populates="owner",
        cascade="all, delete-orphan",
        doc="Categories owned by this owner"
    )

    def __repr__(self) -> str:
        return f"<Owner(username='{self.username}', timezone='{self.timezone}')>"


class Category(BaseModel):
    """
    Category (label) for commitments and templates.

    Every owner has exactly one category flagged `is_uncategorized`, used
    when a template or solidified commitment has none.
    """

    __tablename__ = "categories"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owner of this category"
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Category name"
    )

    is_uncategorized: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether this is the owner's default 'Uncategorized' category"
    )

    owner: Mapped["Owner"] = relationship(
        "Owner",
        back_populates="categories",
    )

    __table_args__ = (
        Index("idx_category_owner", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<Category(name='{self.name}', owner_id={self.owner_id})>"
