# backend/tutorlink/core/timezone_utils.py
"""
Timezone utilities for the TutorLink session engine.

All session times live in a single operating timezone and are stored as
naive wall-clock datetimes. These helpers move values in and out of it.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from .config import settings


def get_operating_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """
    Get the operating timezone.

    Args:
        name: Optional IANA name overriding the configured one

    Returns:
        pytz timezone object
    """
    return pytz.timezone(name or settings.operating_timezone)


def now_in_operating_timezone(name: Optional[str] = None) -> datetime:
    """Current wall-clock time in the operating timezone, without tzinfo."""
    return datetime.now(get_operating_timezone(name)).replace(tzinfo=None)


def to_operating_naive(dt: datetime, name: Optional[str] = None) -> datetime:
    """
    Normalize a datetime to a naive wall-clock value in the operating timezone.

    Naive inputs are assumed to already be operating-local and are returned
    unchanged; aware inputs are converted first.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(get_operating_timezone(name)).replace(tzinfo=None)


def to_utc(dt: datetime, name: Optional[str] = None) -> datetime:
    """Convert a naive operating-local datetime to an aware UTC datetime."""
    if dt.tzinfo is not None:
        return dt.astimezone(pytz.UTC)
    return get_operating_timezone(name).localize(dt).astimezone(pytz.UTC)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def same_calendar_day(start: datetime, end: datetime) -> bool:
    """
    True when ``[start, end)`` does not cross midnight.

    An end of exactly the following midnight still belongs to the start's day,
    matching a declared slot end of ``24:00``.
    """
    next_midnight = start_of_day(start.date()) + timedelta(days=1)
    return end <= next_midnight
