"""Timezone helpers shared by models and services."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a datetime loaded from the database to aware UTC.

    Both SQLite and MySQL (through PyMySQL) hand back naive datetimes, since
    neither column type keeps tzinfo. Every stored value is written in UTC, so
    a naive value can be tagged safely.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
