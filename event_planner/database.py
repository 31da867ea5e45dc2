"""
Database configuration and session management.

Provides:
- build_engine() for SQLite (single static connection) or pooled PostgreSQL
- SessionLocal factory bound to the configured engine
- get_db_context() unit of work for lifecycle and solidify operations
- Schema utilities for local use (migrations live under alembic/)
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from event_planner.config import get_settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    # Owner deletes cascade to categories, templates and commitments
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets one shared connection with foreign keys enforced; anything
    else gets a small recycled pool.

    Args:
        database_url: SQLAlchemy URL
        echo: Log emitted SQL

    Returns:
        Configured Engine
    """
    if database_url.lower().startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine

    return create_engine(
        database_url,
        pool_size=5,
        pool_recycle=3600,
        pool_pre_ping=True,
        echo=echo,
    )


settings = get_settings()

if settings.is_production:
    settings.validate_production_config()

engine = build_engine(settings.database_url, echo=settings.log_level == "DEBUG")

# autoflush is off so conflict queries never see a half-applied change
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Unit of work for one lifecycle or solidify operation.

    Commits when the block completes, rolls back if it raises, so the
    validate -> conflict-check -> persist sequence is all or nothing.

    Usage:
        with get_db_context() as db:
            manager = CommitmentManager(db, clock=SystemClockProvider())
            manager.confirm(commitment_id)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create every table on the engine (defaults to the configured one)."""
    from event_planner.models import Base

    target = bind or engine
    logger.info(f"Creating tables on {target.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(bind=target)


def drop_all_tables(bind: Optional[Engine] = None) -> None:
    """
    Drop every table.

    WARNING: deletes all data. Development and tests only.
    """
    from event_planner.models import Base

    target = bind or engine
    logger.warning(f"Dropping all tables on {target.url.render_as_string(hide_password=True)}")
    Base.metadata.drop_all(bind=target)


def check_connection() -> bool:
    """
    Run a trivial query through a unit of work.

    Returns:
        True if the database answered, False otherwise
    """
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
    logger.info("Database connection successful")
    return True
