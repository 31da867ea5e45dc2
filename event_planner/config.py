"""
Configuration management for the Event Planner engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

import logging
import sys
from datetime import date
from functools import lru_cache
from typing import Literal

from dateutil import tz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/event_planner.db",
        description="Database connection URL"
    )

    # Scheduling
    default_timezone: str = Field(
        default="America/Los_Angeles",
        description="Zone assigned to owners created without one (IANA timezone name)"
    )
    conflict_check_horizon_days: int = Field(
        default=31,
        ge=1,
        description="Maximum number of days compared when checking two recurring templates"
    )
    far_future_date: date = Field(
        default=date(5000, 1, 1),
        description="Stand-in end date for templates that recur indefinitely"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if tz.gettz(v) is None:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        # Per-owner row locks are only honoured by PostgreSQL
        if not self.uses_postgresql:
            errors.append(
                "Production requires PostgreSQL. "
                "Set DATABASE_URL to a PostgreSQL connection string."
            )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """
    Configure root logging for scripts and workers.

    Args:
        level: Logging level name; defaults to Settings.log_level
    """
    log_level = getattr(logging, (level or get_settings().log_level).upper())

    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        level=log_level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
