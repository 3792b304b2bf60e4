"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def add_hours(start: datetime, hours: int) -> datetime:
    """Contract end time: start + duration in hours."""
    return start + timedelta(hours=hours)
