"""
Unified time utilities for the irrigation cycle.

Ensures consistent date handling across:
- the weather analysis window (CIMIS request dates, cache file names)
- the persisted irrigation records ("YYYY-MM-DD HH:MM:SS")
- the demand model (whole days since last irrigation)
"""

from datetime import date, datetime


RECORD_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
API_DATE_FORMAT = "%Y-%m-%d"
SECONDS_IN_DAY = 86400


def now() -> datetime:
    """Return current local datetime without microseconds."""
    return datetime.now().replace(microsecond=0)


def to_record_str(dt: datetime) -> str:
    """Format a datetime the way irrigation records store it."""
    return dt.strftime(RECORD_DATE_FORMAT)


def from_record_str(value: str) -> datetime:
    """
    Parse a record date string.

    :raises ValueError: if the string does not match RECORD_DATE_FORMAT.
    """
    return datetime.strptime(value, RECORD_DATE_FORMAT)


def to_api_str(d: date) -> str:
    """Format a calendar date for CIMIS requests and cache keys."""
    return d.strftime(API_DATE_FORMAT)


def whole_days_between(start: datetime, end: datetime) -> int:
    """
    Number of whole days from start to end, truncated toward zero.

    :raises ValueError: if either start or end is None.
    """
    if start is None or end is None:
        raise ValueError("Both 'start' and 'end' must be valid datetime objects.")
    return int((end - start).total_seconds() / SECONDS_IN_DAY)
