from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, InvalidRequest, NotFound
from ..core.timeutils import ensure_utc, utc_now
from ..db import models
from ..db.models.call_slot import SlotStatus
from ..db.session import transaction

logger = logging.getLogger(__name__)

SLOT_TIME_CONSTRAINT = "uq_call_slot_tutor_time"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def get_tutor_by_email(db: Session, email: str, *, lock: bool = False) -> models.Tutor:
    normalized = normalize_email(email)
    if not normalized or "@" not in normalized:
        raise InvalidRequest("tutor_email", "Invalid tutor email")
    stmt = select(models.Tutor).where(func.lower(models.Tutor.email) == normalized)
    if lock:
        stmt = stmt.with_for_update()
    tutor = db.execute(stmt).scalar_one_or_none()
    if tutor is None:
        raise NotFound("tutor", "Tutor not found")
    return tutor


def get_active_call_type(db: Session, slug: str) -> models.CallType:
    call_type = db.execute(
        select(models.CallType).where(models.CallType.slug == slug.strip().lower())
    ).scalar_one_or_none()
    if call_type is None or not call_type.active:
        raise InvalidRequest("call_type", "Call type is not bookable")
    return call_type


def find_overlapping_booked(
    db: Session, tutor_id: int, starts_at: datetime, ends_at: datetime
) -> models.CallSlot | None:
    return (
        db.execute(
            select(models.CallSlot)
            .where(
                models.CallSlot.tutor_id == tutor_id,
                models.CallSlot.status == SlotStatus.booked,
                models.CallSlot.starts_at < ends_at,
                models.CallSlot.ends_at > starts_at,
            )
            .limit(1)
        )
        .scalars()
        .first()
    )


def find_covering_block(
    db: Session, tutor_id: int, starts_at: datetime, ends_at: datetime
) -> models.AvailabilityBlock | None:
    return (
        db.execute(
            select(models.AvailabilityBlock)
            .where(
                models.AvailabilityBlock.tutor_id == tutor_id,
                models.AvailabilityBlock.starts_at <= starts_at,
                models.AvailabilityBlock.ends_at >= ends_at,
            )
            .limit(1)
        )
        .scalars()
        .first()
    )


def get_slot_at(db: Session, tutor_id: int, starts_at: datetime) -> models.CallSlot | None:
    return db.execute(
        select(models.CallSlot)
        .where(
            models.CallSlot.tutor_id == tutor_id,
            models.CallSlot.starts_at == starts_at,
        )
        .with_for_update()
    ).scalar_one_or_none()


def _is_slot_time_collision(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", "")
    if constraint == SLOT_TIME_CONSTRAINT:
        return True
    # SQLite reports the columns instead of the constraint name
    return "call_slots.tutor_id, call_slots.starts_at" in str(exc.orig)


def allocate_slot(
    db: Session,
    tutor: models.Tutor,
    call_type: models.CallType,
    starts_at: datetime,
    *,
    now: datetime | None = None,
) -> models.CallSlot:
    """Book the ``(tutor, starts_at)`` slot inside the caller's transaction.

    The caller must already hold the row lock on ``tutor``; that lock is what
    serializes the overlap check and the write against other reservations
    for the same tutor.
    """

    starts_at = ensure_utc(starts_at)
    if starts_at <= ensure_utc(now or utc_now()):
        raise InvalidRequest("time_in_past", "Start time is in the past")
    duration_min = int(call_type.duration_min or 0)
    if duration_min <= 0:
        raise InvalidRequest("call_type", "Call type has no duration")
    ends_at = starts_at + timedelta(minutes=duration_min)

    if find_overlapping_booked(db, tutor.id, starts_at, ends_at) is not None:
        raise Conflict("already_booked", "Slot already booked")
    if find_covering_block(db, tutor.id, starts_at, ends_at) is None:
        raise InvalidRequest("outside_availability", "Outside tutor availability")

    slot = get_slot_at(db, tutor.id, starts_at)
    if slot is not None and slot.status == SlotStatus.booked:
        raise Conflict("already_booked", "Slot already booked")
    if slot is None:
        slot = models.CallSlot(tutor_id=tutor.id, starts_at=starts_at)
        db.add(slot)
    slot.call_type_id = call_type.id
    slot.duration_min = duration_min
    slot.ends_at = ends_at
    slot.status = SlotStatus.booked
    try:
        db.flush()
    except IntegrityError as exc:
        if _is_slot_time_collision(exc):
            raise Conflict("already_booked", "Slot already booked") from exc
        raise
    logger.info(
        "Slot booked",
        extra={"tutor_id": tutor.id, "slot_id": slot.id, "starts_at": starts_at.isoformat()},
    )
    return slot


def reserve_slot(
    db: Session,
    tutor_email: str,
    starts_at: datetime,
    call_type_slug: str,
    *,
    now: datetime | None = None,
) -> models.CallSlot:
    with transaction(db):
        tutor = get_tutor_by_email(db, tutor_email, lock=True)
        call_type = get_active_call_type(db, call_type_slug)
        slot = allocate_slot(db, tutor, call_type, starts_at, now=now)
    return slot


def release_slot(db: Session, slot: models.CallSlot | None) -> None:
    """Return a booked slot to ``free`` inside the caller's transaction."""

    if slot is None:
        return
    slot.status = SlotStatus.free
    db.flush()


__all__ = [
    "allocate_slot",
    "find_covering_block",
    "find_overlapping_booked",
    "get_active_call_type",
    "get_tutor_by_email",
    "normalize_email",
    "release_slot",
    "reserve_slot",
]
