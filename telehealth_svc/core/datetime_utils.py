"""
UTC-first datetime utilities.

- All datetimes are stored and processed in UTC
- Document timestamps are ISO 8601 strings with microsecond precision and a
  'Z' suffix, so they sort lexicographically in the document store
- Incoming strings are accepted in several common formats and normalized to UTC

Usage:
    from telehealth_svc.core.datetime_utils import utc_now, parse_datetime, format_iso

    now = utc_now()
    dt = parse_datetime("2024-01-15T10:30:00+05:30")  # Converts to UTC
    iso_str = format_iso(dt)  # "2024-01-15T05:00:00.000000Z"
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Get current datetime in UTC with timezone info."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    - If datetime is naive (no timezone), assumes it's already UTC
    - If datetime has timezone, converts to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# Fallback formats tried after ISO 8601
_FORMATS = [
    "%Y-%m-%d %H:%M:%S",      # 2024-01-15 10:30:00
    "%Y-%m-%d %H:%M",         # 2024-01-15 10:30
    "%Y/%m/%d",               # 2024/01/15
    "%m/%d/%Y %H:%M",         # 01/15/2024 10:30
    "%m/%d/%Y",               # 01/15/2024 (intake forms are US-formatted)
]


def parse_datetime(value: Union[str, datetime, date]) -> datetime:
    """
    Parse a datetime value to UTC datetime.

    Accepts:
    - datetime object (returned after UTC conversion)
    - date object (midnight UTC)
    - ISO 8601 string (with or without timezone, 'Z' suffix allowed)
    - A handful of common date formats

    Raises:
        ValueError: If the value cannot be parsed.

    Examples:
        >>> parse_datetime("2024-01-15T10:30:00Z")
        datetime.datetime(2024, 1, 15, 10, 30, tzinfo=datetime.timezone.utc)
    """
    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if not isinstance(value, str):
        raise ValueError(f"Expected datetime or string, got {type(value).__name__}")

    value = value.strip()

    try:
        if value.endswith('Z'):
            value = value[:-1] + '+00:00'
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        pass

    for fmt in _FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise ValueError(f"Cannot parse datetime: '{value}'")


def parse_datetime_safe(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Parse datetime with graceful error handling.

    Returns:
        Parsed datetime in UTC, or None if parsing fails or input is None.
    """
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        logger.debug(f"Failed to parse datetime '{value}': {e}")
        return None


def format_iso(dt: datetime) -> str:
    """
    Format datetime to an ISO 8601 UTC string with microsecond precision.

    Example:
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00.000000Z'
    """
    utc_dt = to_utc(dt)
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utc_now_iso() -> str:
    """Current UTC time as a document timestamp string."""
    return format_iso(utc_now())
