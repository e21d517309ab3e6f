from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from ...api import deps
from ...core.auth import Viewer
from ...core.errors import BookingEngineError, InvalidRequest
from ...core.timeutils import ensure_utc
from ...db.session import get_db
from ...db import models, schemas
from ...services import booking_service, digest_service, hours_ledger
from ...services.mail import BaseMailer

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _booking_out(booking: models.Booking) -> schemas.Booking:
    slot = booking.slot
    return schemas.Booking(
        id=booking.id,
        slot_id=booking.slot_id,
        tutor_id=booking.tutor_id,
        call_type_id=booking.call_type_id,
        full_name=booking.full_name,
        email=booking.email,
        note=booking.note,
        status=booking.status.value,
        booked_at=booking.booked_at,
        starts_at=ensure_utc(slot.starts_at) if slot else None,
        duration_min=slot.duration_min if slot else None,
        call_type=booking.call_type.label if booking.call_type else None,
        tutor_name=booking.tutor.label if booking.tutor else None,
    )


@router.post("/reserve", response_model=schemas.ReserveAndBookResponse)
def reserve_and_book(payload: schemas.ReserveAndBookRequest, db: Session = Depends(get_db)):
    try:
        result = booking_service.reserve_and_book(
            db,
            tutor_email=payload.tutor_email,
            starts_at=payload.starts_at,
            full_name=payload.full_name,
            student_email=payload.student_email,
            note=payload.note,
        )
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.ReserveAndBookResponse(
        booking_id=result.booking.id,
        starts_at=ensure_utc(result.booking.slot.starts_at),
        warnings=result.warnings,
    )


@router.post("/complete", response_model=schemas.CompleteBookingResponse)
def complete_booking(
    payload: schemas.CompleteBookingRequest,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    try:
        if payload.booking_id is None:
            raise InvalidRequest("missing_booking_id", "booking_id is required")
        result = hours_ledger.complete_booking(
            db,
            payload.booking_id,
            student_id=payload.student_id,
            hours_override=payload.hours,
            viewer=viewer,
        )
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.CompleteBookingResponse(
        hours_deducted=float(result.hours_deducted),
        tutor_id=result.tutor_id,
        student_id=result.student_id,
        match=result.match.value,
    )


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = None,
    status: models.BookingStatus | None = None,
    tutor_id: int | None = None,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    bookings = booking_service.list_bookings(
        db, viewer, from_dt=from_, to_dt=to, status=status, tutor_id=tutor_id
    )
    return [_booking_out(booking) for booking in bookings]


@router.post("/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    try:
        booking = booking_service.cancel_booking(db, booking_id, viewer)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return _booking_out(booking)


@router.post("/{booking_id}/remind", response_model=schemas.ReminderResponse)
def send_reminder(
    booking_id: int,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
    mailer: BaseMailer = Depends(deps.get_mail_sender),
):
    try:
        sent_to = digest_service.send_booking_reminder(db, booking_id, viewer, mailer=mailer)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.ReminderResponse(booking_id=booking_id, sent_to=sent_to)
