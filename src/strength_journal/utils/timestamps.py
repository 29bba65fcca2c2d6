"""
Epoch-millisecond timestamp utilities.

All sync metadata (``updatedAt``, ``deletedAt``, ``exportedAt``) is stored as
integer milliseconds since the Unix epoch, UTC.
"""

import time
from datetime import datetime

import pytz
from dateutil import parser


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_datetime(ms: int, timezone_str: str = "UTC") -> datetime:
    """
    Convert epoch milliseconds to a timezone-aware datetime.

    Args:
        ms: Epoch milliseconds.
        timezone_str: Timezone of the returned datetime.

    Returns:
        Timezone-aware datetime object.
    """
    utc_dt = datetime.fromtimestamp(ms / 1000, tz=pytz.utc)
    return utc_dt.astimezone(pytz.timezone(timezone_str))


def iso_date(ms: int) -> str:
    """Return the UTC calendar date of ``ms`` as ``YYYY-MM-DD``."""
    return ms_to_datetime(ms).date().isoformat()


def datetime_to_ms(dt: datetime) -> int:
    """Convert a timezone-aware datetime to epoch milliseconds."""
    return int(dt.timestamp() * 1000)


def parse_to_ms(text: str, timezone_str: str = "UTC") -> int:
    """
    Parse a date or datetime string into epoch milliseconds.

    Naive values are interpreted in ``timezone_str``.

    Args:
        text: Date string (various formats supported).
        timezone_str: Timezone assumed for naive values.

    Returns:
        Epoch milliseconds.
    """
    dt = parser.parse(text)
    if dt.tzinfo is None:
        dt = pytz.timezone(timezone_str).localize(dt)
    return datetime_to_ms(dt)


def days_to_ms(days: int) -> int:
    """Length of ``days`` whole days in milliseconds."""
    return days * 24 * 60 * 60 * 1000
