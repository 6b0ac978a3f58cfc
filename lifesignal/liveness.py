"""
Check-in expiration and liveness calculations.

Pure functions over (last_check_in, interval). Nothing here reads the wall
clock unless `now` is omitted.

File: liveness.py
Created: 2026-10-12
Last Modified: 2026-10-16
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

Clock = Callable[[], datetime]
Interval = Union[timedelta, int, float]

DEFAULT_CHECK_IN_INTERVAL = timedelta(hours=24)
MINIMUM_CHECK_IN_INTERVAL = timedelta(hours=1)
MAXIMUM_CHECK_IN_INTERVAL = timedelta(hours=72)

# Common picker values in hours
COMMON_CHECK_IN_INTERVALS = [1, 2, 4, 8, 12, 24, 48, 72]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_timedelta(interval: Interval) -> timedelta:
    """Accept seconds or a timedelta."""
    if isinstance(interval, timedelta):
        return interval
    return timedelta(seconds=float(interval))


def expiration(last_check_in: Optional[datetime], interval: Interval) -> Optional[datetime]:
    """When the current check-in expires, or None if never checked in."""
    if last_check_in is None:
        return None
    return last_check_in + as_timedelta(interval)


def is_non_responsive(
    last_check_in: Optional[datetime],
    interval: Interval,
    now: Optional[datetime] = None,
) -> bool:
    """
    True once the interval has elapsed without a new check-in.

    A contact that has never checked in is non-responsive.
    """
    expires = expiration(last_check_in, interval)
    if expires is None:
        return True
    now = now or utc_now()
    return now > expires


def time_remaining(
    last_check_in: Optional[datetime],
    interval: Interval,
    now: Optional[datetime] = None,
) -> timedelta:
    """Time left before expiration, floored at zero."""
    expires = expiration(last_check_in, interval)
    if expires is None:
        return timedelta(0)
    now = now or utc_now()
    return max(timedelta(0), expires - now)


def format_remaining(duration: Union[timedelta, float]) -> str:
    """
    Render a remaining duration for display.

    Examples:
        >>> format_remaining(timedelta(0))
        'Overdue'
        >>> format_remaining(timedelta(days=2, hours=5))
        '2d 5h'
        >>> format_remaining(timedelta(hours=3, minutes=12))
        '3h 12m'
    """
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    if seconds <= 0:
        return "Overdue"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    if days > 0:
        return f"{days}d {hours}h"

    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def format_interval(interval: Interval) -> str:
    """Full-unit rendering, e.g. '2 days 5 hours' or '30 minutes'."""
    seconds = int(as_timedelta(interval).total_seconds())
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60

    parts = []
    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    return " ".join(parts) if parts else "0 minutes"


__all__ = [
    "Clock",
    "Interval",
    "DEFAULT_CHECK_IN_INTERVAL",
    "MINIMUM_CHECK_IN_INTERVAL",
    "MAXIMUM_CHECK_IN_INTERVAL",
    "COMMON_CHECK_IN_INTERVALS",
    "utc_now",
    "as_timedelta",
    "expiration",
    "is_non_responsive",
    "time_remaining",
    "format_remaining",
    "format_interval",
]
