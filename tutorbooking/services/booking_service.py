from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core.auth import Viewer, ensure_tutor_scope
from ..core.errors import Conflict, InvalidRequest, NotFound
from ..core.timeutils import ensure_utc
from ..db import models
from ..db.models.booking import BookingStatus
from ..db.session import transaction
from .calendar import CalendarError, get_calendar_gateway
from .slot_allocator import allocate_slot, get_active_call_type, get_tutor_by_email, release_slot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BookingResult:
    booking: models.Booking
    warnings: list[str] = field(default_factory=list)


def _validate_contact(full_name: str, email: str) -> tuple[str, str]:
    full_name = (full_name or "").strip()
    email = (email or "").strip()
    if not full_name:
        raise InvalidRequest("full_name", "Invalid name")
    if not email or "@" not in email:
        raise InvalidRequest("student_email", "Invalid student email")
    return full_name, email


def _calendar_description(booking: models.Booking, tutor: models.Tutor, call_type: models.CallType) -> str:
    lines = [
        f"Studente: {booking.full_name}",
        f"Email: {booking.email}",
        f"Tutor: {tutor.label}",
        f"Tipo: {call_type.label}",
    ]
    if booking.note:
        lines.append(f"Note: {booking.note}")
    return "\n".join(lines)


def _create_calendar_event(
    db: Session,
    booking: models.Booking,
    slot: models.CallSlot,
    tutor: models.Tutor,
    call_type: models.CallType,
) -> list[str]:
    """Best-effort calendar invite; never fails the booking."""

    booking_id = booking.id
    starts_at = ensure_utc(slot.starts_at)
    try:
        gateway = get_calendar_gateway(get_settings())
        event_id = gateway.create_event(
            summary=f"{call_type.label} Theoremz - {booking.full_name}",
            description=_calendar_description(booking, tutor, call_type),
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=slot.duration_min),
            request_id=f"booking-{booking_id}",
        )
        if event_id:
            with transaction(db):
                booking.calendar_event_id = event_id
    except CalendarError:
        logger.exception("Calendar event failed", extra={"booking_id": booking_id})
        return ["calendar_event_failed"]
    except Exception:
        # The booking is already committed; anything past this point is reported only.
        logger.exception("Unexpected calendar failure", extra={"booking_id": booking_id})
        return ["calendar_event_failed"]
    return []


def create_booking(
    db: Session,
    slot: models.CallSlot,
    *,
    full_name: str,
    email: str,
    note: str | None = None,
) -> models.Booking:
    """Insert a confirmed booking for an already reserved slot (caller's transaction)."""

    booking = models.Booking(
        slot_id=slot.id,
        tutor_id=slot.tutor_id,
        call_type_id=slot.call_type_id,
        full_name=full_name,
        email=email,
        note=note or None,
        status=BookingStatus.confirmed,
    )
    db.add(booking)
    db.flush()
    return booking


def reserve_and_book(
    db: Session,
    *,
    tutor_email: str,
    starts_at: datetime,
    full_name: str,
    student_email: str,
    note: str | None = None,
    call_type_slug: str | None = None,
    now: datetime | None = None,
) -> BookingResult:
    full_name, student_email = _validate_contact(full_name, student_email)
    slug = call_type_slug or get_settings().default_call_type
    with transaction(db):
        tutor = get_tutor_by_email(db, tutor_email, lock=True)
        call_type = get_active_call_type(db, slug)
        slot = allocate_slot(db, tutor, call_type, starts_at, now=now)
        booking = create_booking(db, slot, full_name=full_name, email=student_email, note=note)
    logger.info(
        "Booking confirmed",
        extra={"booking_id": booking.id, "tutor_id": tutor.id, "slot_id": slot.id},
    )
    warnings = _create_calendar_event(db, booking, slot, tutor, call_type)
    return BookingResult(booking=booking, warnings=warnings)


def get_booking(db: Session, booking_id: int, *, lock: bool = False) -> models.Booking:
    stmt = select(models.Booking).where(models.Booking.id == booking_id)
    if lock:
        stmt = stmt.with_for_update()
    booking = db.execute(stmt).scalar_one_or_none()
    if booking is None:
        raise NotFound("booking", "Booking not found")
    return booking


def cancel_booking(db: Session, booking_id: int, viewer: Viewer) -> models.Booking:
    with transaction(db):
        booking = get_booking(db, booking_id, lock=True)
        ensure_tutor_scope(viewer, booking.tutor_id)
        if booking.status == BookingStatus.completed:
            raise Conflict("already_completed", "Completed bookings cannot be cancelled")
        if booking.status == BookingStatus.cancelled:
            raise Conflict("already_cancelled", "Booking already cancelled")
        booking.status = BookingStatus.cancelled
        release_slot(db, booking.slot)
    logger.info("Booking cancelled", extra={"booking_id": booking.id, "actor": viewer.email})
    return booking


def list_bookings(
    db: Session,
    viewer: Viewer,
    *,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    status: BookingStatus | None = None,
    tutor_id: int | None = None,
) -> list[models.Booking]:
    query = (
        db.query(models.Booking)
        .join(models.CallSlot, models.Booking.slot_id == models.CallSlot.id)
        .options(
            selectinload(models.Booking.slot),
            selectinload(models.Booking.tutor),
            selectinload(models.Booking.call_type),
        )
    )
    if not viewer.is_admin:
        query = query.filter(models.Booking.tutor_id == viewer.tutor_id)
    elif tutor_id:
        query = query.filter(models.Booking.tutor_id == tutor_id)
    if from_dt:
        query = query.filter(models.CallSlot.starts_at >= ensure_utc(from_dt))
    if to_dt:
        query = query.filter(models.CallSlot.starts_at < ensure_utc(to_dt))
    if status:
        query = query.filter(models.Booking.status == status)
    return query.order_by(models.CallSlot.starts_at).all()


__all__ = [
    "BookingResult",
    "cancel_booking",
    "create_booking",
    "get_booking",
    "list_bookings",
    "reserve_and_book",
]
