# Overview: UTC timestamp helpers shared by models, receipts and reports.

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC 'now'; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored (naive UTC) timestamp as ISO-8601 with a trailing 'Z', whole seconds."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def parse_iso_datetime(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a report bound into naive UTC.

    - None / "" -> None
    - "YYYY-MM-DD" is a whole day: its first instant, or its last one when
      end_of_day is set (so end=2024-01-31 includes sales on the 31st)
    - naive datetimes are taken as UTC; "Z" and offsets are converted

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if len(s) == 10:
        day = date.fromisoformat(s)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
