"""
Unit tests for event_planner/config.py

Tests Settings defaults, environment variable loading, validation and
configuration caching behavior.
"""

import logging
from datetime import date

import pytest
from pydantic import ValidationError

from event_planner.config import Settings, get_settings, setup_logging


class TestSettingsDefaults:
    """Test Settings initialization with default values."""

    def test_settings_defaults(self):
        """Settings should initialize with correct default values."""
        settings = Settings(_env_file=None)

        assert settings.python_env == "development"
        assert settings.log_level == "INFO"
        assert settings.database_url == "sqlite:///./data/event_planner.db"
        assert settings.default_timezone == "America/Los_Angeles"
        assert settings.conflict_check_horizon_days == 31
        assert settings.far_future_date == date(5000, 1, 1)

    def test_is_development_default(self):
        settings = Settings(_env_file=None)
        assert settings.is_development is True
        assert settings.is_production is False

    def test_is_production_when_set(self):
        settings = Settings(_env_file=None, python_env="production")
        assert settings.is_production is True
        assert settings.is_development is False


class TestSettingsEnvironmentVariables:
    """Test Settings loading from environment variables."""

    def test_settings_from_env_vars(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/test")
        monkeypatch.setenv("DEFAULT_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("CONFLICT_CHECK_HORIZON_DAYS", "14")

        settings = Settings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.uses_postgresql is True
        assert settings.default_timezone == "Europe/Berlin"
        assert settings.conflict_check_horizon_days == 14


class TestSettingsValidation:
    """Test field and production validation."""

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_timezone="Mars/Olympus_Mons")

    def test_horizon_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, conflict_check_horizon_days=0)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="VERBOSE")

    def test_production_requires_postgresql(self):
        settings = Settings(_env_file=None, python_env="production", database_url="sqlite:///prod.db")

        with pytest.raises(ValueError, match="PostgreSQL"):
            settings.validate_production_config()

    def test_production_with_postgresql(self):
        settings = Settings(
            _env_file=None, python_env="production", database_url="postgresql://db/event_planner"
        )

        settings.validate_production_config()

    def test_development_skips_production_checks(self):
        Settings(_env_file=None, database_url="sqlite:///dev.db").validate_production_config()


class TestGetSettings:
    """Test settings caching."""

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestSetupLogging:
    """Test root logging configuration."""

    def test_setup_logging_level(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        setup_logging("debug")

        assert calls["level"] == logging.DEBUG
        assert len(calls["handlers"]) == 1
