from datetime import datetime
from datetime import timezone
from typing import Any


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes coming back from the database are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(v: Any) -> datetime | None:
    if not v:
        return None
    if isinstance(v, datetime):
        return ensure_utc(v)
    try:
        return ensure_utc(datetime.fromisoformat(str(v).replace('Z', '+00:00')))
    except (ValueError, TypeError):
        return None


def to_iso(value: datetime) -> str:
    """ISO-8601 with a trailing Z, the format the GitHub API expects for `since`."""
    return ensure_utc(value).strftime('%Y-%m-%dT%H:%M:%SZ')


def latest(*values: datetime | None) -> datetime | None:
    present = [v for v in values if v is not None]
    return max(present) if present else None
