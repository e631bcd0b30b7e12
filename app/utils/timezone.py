"""
Date and time utilities.

All timestamps are stored as naive UTC datetimes. Scoring days are calendar
dates in UTC; the "today" of a scoring run is always derived from
``utc_today()`` unless a caller pins a date explicitly.
"""
from datetime import date, datetime, timezone
from typing import Optional, Union

UTC = timezone.utc


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def utc_today() -> date:
    return datetime.now(UTC).date()


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string (or pass through a date/datetime).

    Returns:
        The date, or None for empty input or an unparseable string
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end - start).days
