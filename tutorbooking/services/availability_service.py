from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.auth import Viewer, ensure_tutor_scope
from ..core.constants import (
    MAX_GRID_RANGE,
    MAX_GRID_SLOT_MINUTES,
    MAX_GRID_SLOTS,
    MIN_GRID_SLOT_MINUTES,
)
from ..core.errors import InvalidRequest, NotFound
from ..core.timeutils import ensure_utc, utc_now
from ..db import models
from ..db.models.call_slot import SlotStatus
from ..db.session import transaction
from .slot_allocator import get_active_call_type, get_tutor_by_email

logger = logging.getLogger(__name__)


def target_tutor_id(viewer: Viewer, requested_tutor_id: int | None) -> int:
    """Admins may act on any tutor; tutors always act on themselves."""

    tutor_id = (requested_tutor_id if viewer.is_admin else None) or viewer.tutor_id
    if not tutor_id:
        raise NotFound("tutor", "Tutor not found")
    return tutor_id


def add_availability_block(
    db: Session, tutor_id: int, starts_at: datetime, ends_at: datetime
) -> models.AvailabilityBlock:
    starts_at = ensure_utc(starts_at)
    ends_at = ensure_utc(ends_at)
    if starts_at >= ends_at:
        raise InvalidRequest("invalid_range", "Block must end after it starts")
    with transaction(db):
        if db.get(models.Tutor, tutor_id) is None:
            raise NotFound("tutor", "Tutor not found")
        block = models.AvailabilityBlock(tutor_id=tutor_id, starts_at=starts_at, ends_at=ends_at)
        db.add(block)
        db.flush()
    logger.info("Availability block added", extra={"tutor_id": tutor_id, "block_id": block.id})
    return block


def delete_availability_block(db: Session, block_id: int, viewer: Viewer) -> None:
    with transaction(db):
        block = db.get(models.AvailabilityBlock, block_id)
        if block is None:
            raise NotFound("availability_block", "Availability block not found")
        ensure_tutor_scope(viewer, block.tutor_id)
        db.delete(block)


def list_availability(
    db: Session,
    tutor_email: str,
    *,
    range_days: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Free/busy projection for a booking UI over ``[now, now + range_days)``."""

    settings = get_settings()
    tutor = get_tutor_by_email(db, tutor_email)
    days = range_days if range_days and range_days > 0 else settings.availability_range_days
    range_start = ensure_utc(now or utc_now())
    range_end = range_start + timedelta(days=days)

    blocks = (
        db.execute(
            select(models.AvailabilityBlock)
            .where(
                models.AvailabilityBlock.tutor_id == tutor.id,
                models.AvailabilityBlock.starts_at < range_end,
                models.AvailabilityBlock.ends_at > range_start,
            )
            .order_by(models.AvailabilityBlock.starts_at)
        )
        .scalars()
        .all()
    )
    booked = (
        db.execute(
            select(models.CallSlot)
            .where(
                models.CallSlot.tutor_id == tutor.id,
                models.CallSlot.status == SlotStatus.booked,
                models.CallSlot.starts_at < range_end,
                models.CallSlot.ends_at > range_start,
            )
            .order_by(models.CallSlot.starts_at)
        )
        .scalars()
        .all()
    )
    return {
        "tutor": {"id": tutor.id, "display_name": tutor.display_name, "email": tutor.email},
        "range": {"from": range_start, "to": range_end},
        "blocks": [
            {"starts_at": ensure_utc(b.starts_at), "ends_at": ensure_utc(b.ends_at)} for b in blocks
        ],
        "booked": [
            {"starts_at": ensure_utc(s.starts_at), "ends_at": ensure_utc(s.ends_at)} for s in booked
        ],
        "duration_min": settings.default_duration_min,
    }


def _parse_clock(raw: str) -> time:
    try:
        hours, minutes = (int(part) for part in raw.split(":", 1))
        return time(hour=hours, minute=minutes)
    except ValueError as exc:
        raise InvalidRequest("time_format", f"Invalid time {raw!r}") from exc


def build_free_slot_grid(
    date_from: date,
    date_to: date,
    days_of_week: list[int],
    time_start: str,
    time_end: str,
    slot_minutes: int,
    tz: ZoneInfo,
) -> list[tuple[datetime, datetime]]:
    """Weekly grid of ``(starts_at, ends_at)`` UTC pairs; weekday 0 is Monday."""

    if date_to < date_from:
        raise InvalidRequest("invalid_range", "End date precedes start date")
    if date_to - date_from > MAX_GRID_RANGE:
        raise InvalidRequest("range_too_large", "Range too large (max 120 days)")
    weekdays = {day for day in days_of_week if isinstance(day, int) and 0 <= day <= 6}
    if not weekdays:
        raise InvalidRequest("days_of_week", "Select at least one weekday")
    step = timedelta(
        minutes=max(MIN_GRID_SLOT_MINUTES, min(MAX_GRID_SLOT_MINUTES, slot_minutes or 30))
    )
    start_clock = _parse_clock(time_start)
    end_clock = _parse_clock(time_end)

    grid: list[tuple[datetime, datetime]] = []
    day = date_from
    while day <= date_to and len(grid) < MAX_GRID_SLOTS:
        if day.weekday() in weekdays:
            cursor = datetime.combine(day, start_clock, tzinfo=tz)
            window_end = datetime.combine(day, end_clock, tzinfo=tz)
            while cursor + step <= window_end and len(grid) < MAX_GRID_SLOTS:
                grid.append(
                    (cursor.astimezone(timezone.utc), (cursor + step).astimezone(timezone.utc))
                )
                cursor += step
        day += timedelta(days=1)
    return grid


def publish_free_slots(
    db: Session,
    tutor_id: int,
    *,
    date_from: date,
    date_to: date,
    days_of_week: list[int],
    time_start: str = "09:00",
    time_end: str = "18:00",
    slot_minutes: int = 30,
    call_type_slug: str | None = None,
) -> int:
    """Materialize free slots on a weekly grid and open matching availability.

    Existing slots keyed by ``(tutor_id, starts_at)`` are updated only while
    free; booked ones are left untouched.
    """

    settings = get_settings()
    grid = build_free_slot_grid(
        date_from,
        date_to,
        days_of_week,
        time_start,
        time_end,
        slot_minutes,
        ZoneInfo(settings.timezone),
    )
    if not grid:
        raise InvalidRequest("no_slots_generated", "No slots generated")

    with transaction(db):
        tutor = db.execute(
            select(models.Tutor).where(models.Tutor.id == tutor_id).with_for_update()
        ).scalar_one_or_none()
        if tutor is None:
            raise NotFound("tutor", "Tutor not found")
        call_type = get_active_call_type(db, call_type_slug or settings.default_call_type)

        starts = [starts_at for starts_at, _ in grid]
        existing = {
            ensure_utc(slot.starts_at): slot
            for slot in db.execute(
                select(models.CallSlot).where(
                    models.CallSlot.tutor_id == tutor.id,
                    models.CallSlot.starts_at.in_(starts),
                )
            ).scalars()
        }
        windows: dict[date, tuple[datetime, datetime]] = {}
        written = 0
        for starts_at, ends_at in grid:
            slot = existing.get(starts_at)
            if slot is None:
                slot = models.CallSlot(tutor_id=tutor.id, starts_at=starts_at)
                db.add(slot)
            elif slot.status == SlotStatus.booked:
                continue
            slot.call_type_id = call_type.id
            slot.duration_min = int((ends_at - starts_at).total_seconds() // 60)
            slot.ends_at = ends_at
            slot.status = SlotStatus.free
            written += 1
            local_day = starts_at.astimezone(ZoneInfo(settings.timezone)).date()
            first, last = windows.get(local_day, (starts_at, ends_at))
            windows[local_day] = (min(first, starts_at), max(last, ends_at))

        for window_start, window_end in windows.values():
            covered = db.execute(
                select(models.AvailabilityBlock.id)
                .where(
                    models.AvailabilityBlock.tutor_id == tutor.id,
                    models.AvailabilityBlock.starts_at <= window_start,
                    models.AvailabilityBlock.ends_at >= window_end,
                )
                .limit(1)
            ).first()
            if covered is None:
                db.add(
                    models.AvailabilityBlock(
                        tutor_id=tutor.id, starts_at=window_start, ends_at=window_end
                    )
                )
        db.flush()

    logger.info("Free slots published", extra={"tutor_id": tutor_id, "slots": written})
    return written


__all__ = [
    "add_availability_block",
    "build_free_slot_grid",
    "delete_availability_block",
    "list_availability",
    "publish_free_slots",
    "target_tutor_id",
]
