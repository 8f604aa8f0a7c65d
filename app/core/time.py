from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_iso(dt: Optional[datetime] = None) -> str:
    """
    Convert a datetime to an ISO-8601 string in UTC.
    Naive values (as returned by some drivers) are treated as UTC.
    dt=None returns the current time.
    """
    if dt is None:
        dt = utcnow()
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.isoformat()
