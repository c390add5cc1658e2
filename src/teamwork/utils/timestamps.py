"""
UTC timestamp helpers.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are treated as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_seconds(value: str, now: Optional[datetime] = None) -> float:
    """Seconds elapsed since the given timestamp."""
    now = now or datetime.now(timezone.utc)
    return (now - parse_timestamp(value)).total_seconds()
