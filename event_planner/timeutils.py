"""
Calendar arithmetic helpers.

All instants leaving this module are timezone-aware UTC datetimes truncated
to the minute. Zones are resolved with dateutil.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from dateutil import tz

def get_zone(name: str):
    """
    Resolve an IANA zone name.

    Raises:
        ValueError: If the zone is unknown
    """
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to an aware UTC instant truncated to the minute. Naive input is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(second=0, microsecond=0)


def truncate_time(value: Optional[time]) -> Optional[time]:
    if value is None:
        return None
    return value.replace(second=0, microsecond=0)


def local_date(instant: datetime, zone_name: str) -> date:
    """Calendar date of an instant as seen in the given zone."""
    return to_utc(instant).astimezone(get_zone(zone_name)).date()


def combine_local(day: date, time_of_day: time, zone_name: str) -> datetime:
    """
    Combine a local date and time-of-day into a UTC instant.

    Wall times skipped by a DST jump are moved forward past the gap.
    """
    local = datetime.combine(day, truncate_time(time_of_day), tzinfo=get_zone(zone_name))
    return to_utc(tz.resolve_imaginary(local))


def occurrence_bounds(
    day: date,
    start_time: time,
    end_time: time,
    zone_name: str,
) -> tuple[datetime, datetime]:
    """
    Absolute start/end of one occurrence of a daily time slot.

    An end time at or before the start time ends on the following day.
    """
    start = combine_local(day, start_time, zone_name)
    end_day = day + timedelta(days=1) if truncate_time(end_time) <= truncate_time(start_time) else day
    return start, combine_local(end_day, end_time, zone_name)


def duration_minutes(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    if start is None or end is None:
        return None
    return int((to_utc(end) - to_utc(start)).total_seconds() // 60)
