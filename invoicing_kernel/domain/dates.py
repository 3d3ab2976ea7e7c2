"""
Instant coercion helpers.

Every date that enters the ledger (issue dates, due dates, payment dates,
schedule run dates) is normalized here into a timezone-aware UTC
``datetime``. Records carry instants as ISO-8601 strings; an empty string
means "not set".

Pure functions. No I/O.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def instant_or_none(value: Any) -> datetime | None:
    """Parse ``value`` into a UTC instant, or ``None`` when it cannot be read.

    Accepts ``datetime`` (naive values are taken as UTC), ``date`` (midnight
    UTC) and ISO-8601 strings including a trailing ``Z``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return instant_or_none(parsed)
    return None


def coerce_instant(value: Any, fallback: datetime) -> datetime:
    """Parse ``value`` into a UTC instant, substituting ``fallback``. Never raises."""
    parsed = instant_or_none(value)
    if parsed is None:
        return instant_or_none(fallback) or fallback
    return parsed


def to_iso(value: datetime | None) -> str:
    """Serialize an instant for a record; ``None`` becomes ``""``."""
    if value is None:
        return ""
    return value.astimezone(timezone.utc).isoformat()
