"""
HomeOps Assistant — Local time helpers.

Every date the engine reasons about (daily caps, quiet hours, habit
buckets) is a calendar date in the household's own time zone, not UTC.
zoneinfo handles the DST transitions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Stockholm"

_DAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def to_local(instant: datetime | float | None = None, tz: str = DEFAULT_TIMEZONE) -> datetime:
    """Convert an instant (aware datetime or epoch seconds) to local time.

    Naive datetimes are taken to be UTC.
    """
    if instant is None:
        instant = datetime.now(timezone.utc)
    elif isinstance(instant, (int, float)):
        instant = datetime.fromtimestamp(instant, tz=timezone.utc)
    elif instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz))


def local_date(instant: datetime | float | None = None, tz: str = DEFAULT_TIMEZONE) -> str:
    """Local calendar date as YYYY-MM-DD."""
    return to_local(instant, tz).date().isoformat()


def is_quiet_hours(
    instant: datetime | float | None = None,
    tz: str = DEFAULT_TIMEZONE,
    start_hour: int = 22,
    end_hour: int = 7,
) -> bool:
    """True inside [start_hour, end_hour) local time; the window may wrap midnight."""
    hour = to_local(instant, tz).hour
    if start_hour == end_hour:
        return False
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def local_day_and_hour(
    instant: datetime | float | None = None, tz: str = DEFAULT_TIMEZONE,
) -> tuple[str, str]:
    """Weekday key ("mon".."sun") and hour key ("0".."23") in local time."""
    local = to_local(instant, tz)
    return _DAY_KEYS[local.weekday()], str(local.hour)
