from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt if dt.tzinfo is None else dt.astimezone(timezone.utc).replace(tzinfo=None)


def seconds_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    if start is None or end is None:
        return 0
    delta = as_naive_utc(end) - as_naive_utc(start)
    return max(0, int(delta.total_seconds()))


def format_time(seconds: Optional[float]) -> str:
    """Render a duration as MM:SS (minutes are not wrapped at 60)."""
    total = max(0, int(round(seconds or 0)))
    mins, secs = divmod(total, 60)
    return f"{mins:02d}:{secs:02d}"


def paginate(page: int, limit: int, total: int) -> dict:
    pages = (total + limit - 1) // limit if limit else 0
    return {"page": page, "limit": limit, "total": total, "pages": pages}
