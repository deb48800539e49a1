# src/atelier_mes/db/time.py
"""Time utilities shared by services and models."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def ensure_aware(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment
