"""Datetime helpers.

Provides UTC timestamp helpers without using deprecated ``datetime.utcnow()``.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime read back from storage.

    SQLite drops the offset on write, so stored UTC values come back naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def maven_timestamp(moment: datetime | None = None) -> str:
    """Format a moment as the ``yyyyMMddHHmmss`` stamp used in Maven metadata."""
    return as_utc(moment or utcnow()).strftime("%Y%m%d%H%M%S")
