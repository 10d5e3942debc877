"""
Time helpers shared by scoring, deduplication and workflow planning.

All datetimes handled by the matchmaker are timezone-aware UTC.  Naive
values read back from SQLite (ISO strings without an offset) are assumed
to be UTC and normalized through ``ensure_utc``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(moment: datetime) -> datetime:
    """Midnight UTC of the day containing ``moment``."""
    moment = ensure_utc(moment)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def days_ago(now: datetime, days: int) -> datetime:
    """Return ``now - days`` (lookback window start)."""
    return ensure_utc(now) - timedelta(days=days)


def hours_from(moment: datetime, hours: int) -> datetime:
    """Return ``moment + hours`` (notification expiry)."""
    return ensure_utc(moment) + timedelta(hours=hours)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage as an ISO-8601 UTC string."""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string read back from storage."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))
