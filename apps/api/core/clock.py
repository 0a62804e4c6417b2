"""
Time helpers.

Every timestamp in the API is timezone-aware UTC. SQLite hands back naive
datetimes even for DateTime(timezone=True) columns, so anything read from the
store goes through ensure_utc() before it is compared with utcnow().
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime. Tests monkeypatch this."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
