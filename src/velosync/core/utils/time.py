"""Timezone-aware time helpers."""
from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return ISO 8601 UTC timestamp with a ``Z`` suffix (second precision)."""
    return utc_now().replace(microsecond=0).isoformat().replace("+00:00", "Z")


def file_stamp(dt: datetime | None = None) -> str:
    """Return a filename-safe, lexically sortable UTC stamp.

    Microseconds are included so two backups taken within the same second
    never collide.
    """
    dt = dt or utc_now()
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


__all__ = ["utc_now", "utc_timestamp", "file_stamp"]
