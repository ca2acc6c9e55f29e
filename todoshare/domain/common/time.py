from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def to_iso(dt: datetime) -> str:
    ensure_aware(dt)
    # store as ISO 8601 with offset
    return dt.isoformat()


def to_utc_iso(dt: datetime) -> str:
    """Fixed-width UTC form; lexical order of these strings is chronological."""
    ensure_aware(dt)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(s: str) -> datetime:
    # Python can parse ISO with offset via fromisoformat
    return datetime.fromisoformat(s)


def opt_from_iso(s: Optional[str]) -> Optional[datetime]:
    return from_iso(s) if s else None
