"""
Date and time helpers for stats snapshots and historic buckets.

All timestamps are stored as naive UTC datetimes.
"""

import calendar
from datetime import datetime, timezone
from typing import Tuple

import pytz


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(moment: datetime) -> datetime:
    """Normalise an aware or naive datetime to naive UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(pytz.utc).replace(tzinfo=None)


def local_now(timezone_name: str = 'UTC') -> datetime:
    """Current time in the named timezone."""
    return datetime.now(pytz.timezone(timezone_name))


def truncate_to_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def truncate_to_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def truncate_to_month(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def day_bounds(year: int, month: int, day: int) -> Tuple[datetime, datetime]:
    """Inclusive start and exclusive end of a day."""
    start = datetime(year, month, day)
    if day == calendar.monthrange(year, month)[1]:
        return start, next_month_start(year, month)
    return start, start.replace(day=day + 1)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Inclusive start and exclusive end of a month."""
    return datetime(year, month, 1), next_month_start(year, month)


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    """Inclusive start and exclusive end of a year."""
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def next_month_start(year: int, month: int) -> datetime:
    if month == 12:
        return datetime(year + 1, 1, 1)
    return datetime(year, month + 1, 1)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1
