"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from bakery_ops.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from .constants import DATE_FORMAT


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    SQLite hands back naive datetimes; those are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """
    Parse a date or datetime value supplied by a caller.

    Accepts ISO-8601 strings (date only or full timestamp), date and
    datetime objects. Returns a UTC datetime, or None for None/empty input.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
