"""
Time utilities for chatstream.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def format_long_date(value: datetime) -> str:
    """Render e.g. "January 2, 2006 3:04 PM"."""
    hour = value.hour % 12 or 12
    return f"{value:%B} {value.day}, {value.year} {hour}:{value:%M %p}"
