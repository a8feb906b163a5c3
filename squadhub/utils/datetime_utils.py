"""
Datetime utility functions.
Provides timezone-aware replacements for deprecated datetime functions.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on DateTime(timezone=True) columns, PostgreSQL keeps it.

    Args:
        value: Datetime from the database (naive or aware) or None

    Returns:
        Timezone-aware datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def seconds_since(start: Optional[datetime], now: Optional[datetime] = None) -> int:
    """
    Whole seconds elapsed between start and now (never negative).

    Examples:
        >>> seconds_since(datetime(2026, 1, 1, 12, 0, 0), datetime(2026, 1, 1, 12, 1, 30, tzinfo=pytz.UTC))
        90
    """
    if start is None:
        return 0
    now = ensure_utc(now) if now is not None else utcnow()
    elapsed = (now - ensure_utc(start)).total_seconds()
    return max(0, int(elapsed))


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as UTC ISO-8601, passing None through."""
    value = ensure_utc(value)
    return value.isoformat() if value else None
