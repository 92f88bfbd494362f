"""
Shared utility functions for the application.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime read back from the database to aware UTC.

    SQLite drops tzinfo on DateTime(timezone=True) columns, so naive values
    are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up_percent(part: int, total: int) -> int:
    """
    Integer percentage of part/total, rounding .5 upwards.

    Matches the round() applied to completion percentages by the
    presentation layer (1/6 -> 17, 1/2 -> 50, 2/3 -> 67).
    """
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)
