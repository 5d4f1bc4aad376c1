import os
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "UTC"


def get_user_timezone(name: Optional[str] = None) -> ZoneInfo:
    """
    Returns the timezone used for calendar boundaries (e.g. "today").
    Falls back to UTC when the name is unknown.
    """
    tz_name = name or os.environ.get("GLUCOSE_ENGINE_TZ", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalizes a datetime to aware UTC.
    Assumes naive datetimes are UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    if tz is None:
        tz = get_user_timezone()
    return ensure_utc(dt).astimezone(tz)


def start_of_local_day(dt: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """
    Local midnight of the day containing `dt`, returned in UTC.
    """
    local_dt = to_local(dt, tz)
    midnight = local_dt.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def minutes_between(later: datetime, earlier: datetime) -> float:
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 60.0
