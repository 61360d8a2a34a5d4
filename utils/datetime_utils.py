"""Utilities for working with ISO timestamps, calendar dates and UTC datetimes."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from core.errors import ValidationError

UTC = timezone.utc

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse a RFC3339 string and return a timezone-aware UTC datetime."""

    if not s:
        return None

    value = s.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        if "+" in tail:
            frac, tz = tail.split("+", 1)
            sign = "+"
        elif "-" in tail:
            frac, tz = tail.split("-", 1)
            sign = "-"
        else:
            frac, tz = tail, "00:00"
            sign = "+"
        frac = (frac + "000000")[:6]
        value = f"{head}.{frac}{sign}{tz}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_today() -> date:
    return date.today()


def coerce_date(value: Union[str, date, datetime, None], field: str = "date") -> Optional[date]:
    """Accept ``YYYY-MM-DD`` strings, dates or datetimes; reject anything else."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}")


def coerce_datetime(value: Union[str, datetime, None], field: str = "timestamp") -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        parsed = parse_rfc3339(value)
        if parsed is not None:
            return parsed
    raise ValidationError(f"{field} must be an ISO timestamp, got {value!r}")


def coerce_time(value: Optional[str], field: str = "due_time") -> Optional[str]:
    """Validate a ``HH:MM`` wall-clock time."""

    if value is None or value == "":
        return None
    if isinstance(value, str) and _TIME_RE.match(value.strip()):
        return value.strip()
    raise ValidationError(f"{field} must use HH:MM format, got {value!r}")


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    if not start or not end:
        return None
    delta = ensure_utc(end) - ensure_utc(start)
    minutes = int(delta.total_seconds() // 60)
    return minutes if minutes >= 0 else None


def shift_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def isoformat(value: Union[date, datetime, None]) -> Optional[str]:
    """Serialize a date or datetime for the transport layer."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat().replace("+00:00", "Z")
    return value.isoformat()


__all__ = [
    "UTC",
    "coerce_date",
    "coerce_datetime",
    "coerce_time",
    "ensure_utc",
    "isoformat",
    "local_today",
    "minutes_between",
    "parse_rfc3339",
    "shift_days",
    "utc_now",
]
