"""Timezone-aware datetime utilities for Boardroom.

All persisted timestamps are ISO 8601 strings in UTC. Parsing accepts the
trailing "Z" form written by other tooling.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def file_stamp() -> str:
    """Compact UTC stamp safe for use in file names."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
