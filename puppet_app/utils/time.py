"""
Time helpers for payload timestamps.

Message timestamps are wall-clock UTC milliseconds since the epoch.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: Optional[datetime] = None) -> int:
    """Convert a datetime (default: now) to UTC epoch milliseconds."""
    if dt is None:
        dt = now_utc()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(timestamp_ms: int) -> datetime:
    """Convert UTC epoch milliseconds to an aware datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
