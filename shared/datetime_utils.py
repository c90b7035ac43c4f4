"""
Date/time helpers — framework-agnostic.

Every timestamp handled by the services is timezone-aware UTC. MongoDB is
opened with ``tz_aware=True``; ``ensure_utc`` covers documents written by
older clients that stored naive datetimes.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as aware UTC; naive datetimes are assumed to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_future(value: Optional[datetime], now: datetime) -> bool:
    """True when *value* is set and later than *now*."""
    value = ensure_utc(value)
    return value is not None and value > now


def minutes_until(value: datetime, now: datetime) -> int:
    """Whole minutes (rounded up, at least 1) from *now* until *value*."""
    seconds = (ensure_utc(value) - now).total_seconds()
    return max(1, math.ceil(seconds / 60))
