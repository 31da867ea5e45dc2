"""
Clock providers.

The engine never reads the ambient system clock directly; a ClockProvider
is injected into every manager that needs "now".
"""

from datetime import date, datetime
from typing import Protocol

from event_planner.timeutils import get_zone, to_utc


class ClockProvider(Protocol):
    """Source of the current instant."""

    def now(self, zone_name: str) -> datetime:
        """Current instant as an aware datetime in the given zone."""
        ...


class SystemClockProvider:
    """Wall clock."""

    def now(self, zone_name: str) -> datetime:
        return datetime.now(get_zone(zone_name))


class FixedClockProvider:
    """
    Clock frozen at a given instant.

    Used by tests and for replaying operations as of a past moment.
    """

    def __init__(self, instant: datetime):
        self._instant = to_utc(instant)

    def set(self, instant: datetime) -> None:
        self._instant = to_utc(instant)

    def now(self, zone_name: str) -> datetime:
        return self._instant.astimezone(get_zone(zone_name))


def today(clock: ClockProvider, zone_name: str) -> date:
    """Local calendar date of "now" in the given zone."""
    return clock.now(zone_name).date()

