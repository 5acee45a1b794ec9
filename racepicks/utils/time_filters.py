"""
Time filter utilities for leaderboards.

Resolves a TimePeriod into concrete (start, end) datetime bounds relative to
"now". All bounds are naive UTC, matching how race dates are stored.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from racepicks.data_models.leaderboard import TimePeriod

Bounds = Tuple[Optional[datetime], Optional[datetime]]

WEEK_DAYS = 7
MONTH_DAYS = 30


def utc_now() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_time_bounds(period: TimePeriod, now: Optional[datetime] = None) -> Bounds:
    """
    Resolve a time period to (start, end) bounds.

    - week: the last 7 days
    - month: the last 30 days
    - season: since January 1 of now's year (seasons follow the calendar year)
    - all: unbounded, (None, None)
    """
    if period is TimePeriod.ALL:
        return (None, None)

    now = to_naive_utc(now) if now is not None else utc_now()

    if period is TimePeriod.WEEK:
        return (now - timedelta(days=WEEK_DAYS), now)
    if period is TimePeriod.MONTH:
        return (now - timedelta(days=MONTH_DAYS), now)
    if period is TimePeriod.SEASON:
        return (datetime(now.year, 1, 1), now)

    raise ValueError(f"Unknown time period: {period}")


def within_bounds(moment: datetime, bounds: Bounds) -> bool:
    """Inclusive bounds check, None meaning open-ended"""
    start, end = bounds
    moment = to_naive_utc(moment)
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True
