"""Time helpers.

All timestamps stored by VaultSync are naive UTC datetimes serialized with
``isoformat()`` so that lexical order in SQLite matches chronological order.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO timestamp, returning None for empty or corrupt values."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
