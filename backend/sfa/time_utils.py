from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional

# Timestamps are stored UTC-naive; API output carries a trailing "Z".


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_filter_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a startDate/endDate query value into a UTC-naive datetime.

    Blank -> None. A bare date ("2026-03-01") covers the whole day: its
    start, or its last microsecond when end_of_day is set. Offsets and "Z"
    are converted to UTC. Raises ValueError on anything else.
    """
    text = (value or "").strip()
    if not text:
        return None

    if len(text) == 10:
        day = datetime.strptime(text, "%Y-%m-%d")
        return datetime.combine(day.date(), time.max if end_of_day else time.min)

    parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
