"""
Pytest configuration and fixtures for Event Planner tests.

Provides database session fixtures, owners with categories, a fixed clock
and a recording time tracker.
"""

from datetime import datetime, timezone
from typing import Generator

import pytest
import sqlalchemy as sa
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from event_planner.models import Base, Category, Owner
from event_planner.services import queries
from event_planner.services.clock import FixedClockProvider
from event_planner.services.commitments import CommitmentManager
from event_planner.services.owners import create_owner
from event_planner.services.solidifier import Solidifier
from event_planner.services.templates import RecurringTemplateManager
from event_planner.services.time_tracking import CommitmentChangeContext

# Wednesday noon UTC
NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


# Configure SQLite to enforce foreign key constraints in tests
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class RecordingTimeTracker:
    """Time tracker that keeps every change context it receives."""

    def __init__(self):
        self.changes: list[CommitmentChangeContext] = []

    def record_change(self, context: CommitmentChangeContext) -> None:
        self.changes.append(context)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a clean database session for each test.

    Uses an in-memory SQLite database that is torn down after each test.

    Yields:
        Session: SQLAlchemy session for database operations
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False}
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Disable foreign key constraints for drop operations
        with engine.begin() as connection:
            connection.execute(sa.text("PRAGMA foreign_keys=OFF"))
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def owner(db_session: Session) -> Owner:
    """Owner in UTC so local dates and instants line up in assertions."""
    owner = create_owner(db_session, "alice", "UTC")
    db_session.commit()
    return owner


@pytest.fixture
def la_owner(db_session: Session) -> Owner:
    """Owner in America/Los_Angeles for zone-sensitive tests."""
    owner = create_owner(db_session, "carol", "America/Los_Angeles")
    db_session.commit()
    return owner


@pytest.fixture
def other_owner(db_session: Session) -> Owner:
    owner = create_owner(db_session, "bob", "UTC")
    db_session.commit()
    return owner


@pytest.fixture
def uncategorized(db_session: Session, owner: Owner) -> Category:
    return queries.get_uncategorized_category(db_session, owner.id)


@pytest.fixture
def category(db_session: Session, owner: Owner) -> Category:
    """
    Create a regular category for the default owner.

    Returns:
        Category: A persisted "Work" category
    """
    category = Category(owner_id=owner.id, name="Work")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def foreign_category(db_session: Session, other_owner: Owner) -> Category:
    category = Category(owner_id=other_owner.id, name="Not yours")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def clock() -> FixedClockProvider:
    return FixedClockProvider(NOW)


@pytest.fixture
def time_tracker() -> RecordingTimeTracker:
    return RecordingTimeTracker()


@pytest.fixture
def commitments(db_session: Session, clock: FixedClockProvider, time_tracker: RecordingTimeTracker) -> CommitmentManager:
    return CommitmentManager(db_session, clock, time_tracker)


@pytest.fixture
def templates(db_session: Session, clock: FixedClockProvider) -> RecurringTemplateManager:
    return RecurringTemplateManager(db_session, clock)


@pytest.fixture
def solidifier(db_session: Session, clock: FixedClockProvider, commitments: CommitmentManager) -> Solidifier:
    return Solidifier(db_session, clock, commitments)
