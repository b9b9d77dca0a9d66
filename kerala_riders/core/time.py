"""Datetime helpers shared by models and services."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(raw: Any) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Raises ``ValueError`` for anything that is not a valid timestamp.
    """

    if isinstance(raw, datetime):
        return as_utc(raw)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"Invalid datetime: {raw!r}")
    parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    return as_utc(parsed)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


__all__ = ["as_utc", "isoformat", "parse_datetime", "utcnow"]
