"""
Canonical time handling for the ledgers.

- Internal datetimes are UTC-naive (tzinfo=None), stored as-is.
- API input accepts ISO-8601 with 'Z', offsets, or a bare date.
- API output is ISO-8601 with a trailing 'Z' and full microseconds, since
  reconciliation windows are compared at microsecond resolution.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    "2026-03-01"            -> 2026-03-01 00:00 UTC
    "2026-03-01T10:00"      -> naive, taken as UTC
    "2026-03-01T10:00-06:00" / "...Z" -> converted to UTC

    Blank input yields None; anything unparseable raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if len(text) == 10:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day)
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(text))


def end_of_day(dt: datetime) -> datetime:
    """Exclusive upper bound for a date-only filter ("2026-01-31" -> Feb 1 00:00)."""
    return datetime(dt.year, dt.month, dt.day) + timedelta(days=1)


def strictly_after(*moments: datetime | None) -> datetime:
    """
    A timestamp later than every given moment and no earlier than now.

    Used to stamp a session's closed_at so that the half-open window
    [opened_at, closed_at) contains all of its transactions.
    """
    stamp = utcnow()
    for moment in moments:
        if moment is not None and stamp <= moment:
            stamp = moment + TICK
    return stamp


def to_utc_z(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return as_utc_naive(dt).isoformat() + "Z"
