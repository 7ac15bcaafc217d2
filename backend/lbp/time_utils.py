from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


# Inclusive upper bound of a business day (millisecond precision)
END_OF_DAY = time(23, 59, 59, 999000)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 string -> UTC-naive datetime. Offsets (or a trailing Z) are
    applied; a naive value is already UTC. Blank input gives None.
    """
    raw = (value or "").strip()
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw[:-1] + "+00:00" if raw.endswith("Z") else raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def as_date(value: date | datetime | str | None) -> Optional[date]:
    """
    Coerce a report/movement boundary to a calendar date.

    Datetimes are truncated to their date; ISO strings may carry a time part.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = value.strip()
    if not s:
        return None
    if len(s) == 10:
        return date.fromisoformat(s)
    return parse_iso_datetime(s).date()


def day_bounds(start: date, end: date | None = None) -> tuple[datetime, datetime]:
    """Inclusive datetime range covering ``start`` through the end of ``end``."""
    end = end or start
    return datetime.combine(start, time.min), datetime.combine(end, END_OF_DAY)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO timestamp with a 'Z' suffix (naive means UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None
