"""UTC clock helpers shared by models, stores, and services."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


def as_utc(dt: datetime) -> datetime:
    """Label naive datetimes as UTC; convert aware ones.

    SQLite hands back naive values for ``DateTime(timezone=True)`` columns.
    Everything written by this package is UTC, so a naive value is UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def from_timestamp(ts: int | float) -> datetime:
    """Build an aware UTC datetime from a POSIX timestamp (JWT ``exp``/``iat``)."""
    return datetime.fromtimestamp(ts, tz=UTC)
