"""Helpers for UTC instants and Rome-local calendar days."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .constants import ROME_TZ

ROME = ZoneInfo(ROME_TZ)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def rome_day_range(day: date) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` in UTC for a Rome calendar day.

    DST days are 23 or 25 hours long, so the end is the next local midnight
    rather than ``start + 24h``.
    """

    start = datetime.combine(day, time.min, tzinfo=ROME)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=ROME)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_rome_day(raw: str | None, now: datetime | None = None) -> date:
    """Resolve ``YYYY-MM-DD`` or an ISO instant to a Rome day, defaulting to today."""

    current = ensure_utc(now or utc_now())
    if raw:
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            return ensure_utc(datetime.fromisoformat(raw)).astimezone(ROME).date()
        except ValueError:
            pass
    return current.astimezone(ROME).date()


def is_rome_midnight(now: datetime | None = None) -> bool:
    return ensure_utc(now or utc_now()).astimezone(ROME).hour == 0


def to_rome(value: datetime) -> datetime:
    return ensure_utc(value).astimezone(ROME)
