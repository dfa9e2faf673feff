"""Timestamp helpers.

All timestamps are stored in UTC. SQLite drops tzinfo on the way back,
so values read from it are normalized before comparison.
"""

from datetime import UTC, datetime
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
