from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

# All stored datetimes are UTC-naive; the API renders them with a trailing 'Z'.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utctoday() -> date:
    """Calendar day in UTC; invoice and due dates are UTC days."""
    return utcnow().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an order filter bound ("2026-03-01", "2026-03-01T10:00:00Z",
    "...+02:00") into a UTC-naive datetime. Blank input gives None.

    Raises ValueError for anything datetime.fromisoformat rejects.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a stored datetime as ISO-8601 UTC, second precision, 'Z' suffix."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
