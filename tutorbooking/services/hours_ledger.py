from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.auth import SYSTEM_VIEWER, Viewer, ensure_tutor_scope
from ..core.constants import HOURS_QUANTUM, MIN_SESSION_HOURS
from ..core.errors import Conflict, Forbidden, NotFound
from ..db import models
from ..db.models.booking import BookingStatus
from ..db.models.tutor_assignment import DEFAULT_ASSIGNMENT_ROLE
from ..db.session import transaction
from .student_resolver import MatchKind, resolve_student

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class CompletionResult:
    hours_deducted: Decimal
    tutor_id: int
    student_id: int
    match: MatchKind


def _to_decimal(value) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def session_hours(slot: models.CallSlot | None, hours_override: float | None = None) -> Decimal:
    """Nominal hours to charge, never below a quarter hour."""

    override = _to_decimal(hours_override)
    if override > 0:
        minutes = override * 60
    elif slot is not None and slot.duration_min and slot.duration_min > 0:
        minutes = Decimal(slot.duration_min)
    else:
        minutes = Decimal(get_settings().default_duration_min)
    hours = (minutes / 60).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)
    return max(MIN_SESSION_HOURS, hours)


def _lock_student(db: Session, student_id: int) -> models.Student:
    return db.execute(
        select(models.Student)
        .where(models.Student.id == student_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()


def _lock_tutor(db: Session, tutor_id: int) -> models.Tutor | None:
    return db.execute(
        select(models.Tutor)
        .where(models.Tutor.id == tutor_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def complete_booking(
    db: Session,
    booking_id: int,
    *,
    student_id: int | None = None,
    hours_override: float | None = None,
    viewer: Viewer = SYSTEM_VIEWER,
) -> CompletionResult:
    """Mark a booking as delivered and move hours from the student to the tutor.

    Everything happens in one transaction: the booking, student and tutor rows
    are locked in that order, the student balance is re-read under its lock
    before clamping, and the four writes (tutor credit, student debit, session
    log, booking status) commit together or not at all. A partial charge is
    allowed when the student has fewer hours left than the session lasted.
    """

    with transaction(db):
        booking = db.execute(
            select(models.Booking)
            .where(models.Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if booking is None:
            raise NotFound("booking", "Booking not found")
        ensure_tutor_scope(viewer, booking.tutor_id)
        if booking.status == BookingStatus.completed:
            raise Conflict("already_completed", "Booking already completed")
        if booking.status == BookingStatus.cancelled:
            raise Conflict("booking_cancelled", "Booking was cancelled")

        slot = booking.slot
        hours = session_hours(slot, hours_override)

        match = resolve_student(db, booking, student_id)
        if match.student is None:
            raise Conflict("no_student_linked", "No student linked to the booking")
        assigned_tutor_id = match.student.assigned_tutor_id
        if not viewer.is_admin and assigned_tutor_id not in (None, viewer.tutor_id):
            raise Forbidden("student_not_assigned", "Student is assigned to another tutor")

        student = _lock_student(db, match.student.id)
        available = max(_ZERO, _to_decimal(student.hours_paid))
        to_deduct = min(hours, available)
        if to_deduct <= 0:
            raise Conflict("no_hours_available", "Student has no hours left")

        tutor = _lock_tutor(db, booking.tutor_id)
        if tutor is None:
            raise NotFound("tutor", "Tutor not found")

        tutor.hours_due = _to_decimal(tutor.hours_due) + to_deduct
        student.hours_consumed = _to_decimal(student.hours_consumed) + to_deduct
        student.hours_paid = available - to_deduct
        db.add(
            models.TutorSession(
                tutor_id=tutor.id,
                student_id=student.id,
                booking_id=booking.id,
                duration=to_deduct,
                happened_at=slot.starts_at if slot is not None else booking.booked_at,
                note=booking.full_name or None,
            )
        )
        booking.status = BookingStatus.completed
        db.flush()

    logger.info(
        "Booking completed",
        extra={
            "booking_id": booking_id,
            "tutor_id": tutor.id,
            "student_id": student.id,
            "hours": str(to_deduct),
            "match": match.kind.value,
        },
    )
    return CompletionResult(
        hours_deducted=to_deduct,
        tutor_id=tutor.id,
        student_id=student.id,
        match=match.kind,
    )


def reset_tutor_balance(db: Session, tutor_id: int) -> int:
    """Zero ``hours_due`` after a pay-out and snapshot each student's consumption.

    Returns the number of tutor/student assignments written.
    """

    with transaction(db):
        tutor = _lock_tutor(db, tutor_id)
        if tutor is None:
            raise NotFound("tutor", "Tutor not found")

        assignments = {
            assignment.student_id: assignment
            for assignment in db.query(models.TutorAssignment).filter_by(tutor_id=tutor_id)
        }
        direct = db.query(models.Student).filter_by(assigned_tutor_id=tutor_id).all()
        students = {student.id: student for student in direct}
        for assignment in assignments.values():
            students.setdefault(assignment.student_id, assignment.student)

        for student in students.values():
            assignment = assignments.get(student.id)
            if assignment is None:
                assignment = models.TutorAssignment(
                    tutor_id=tutor_id,
                    student_id=student.id,
                    role=DEFAULT_ASSIGNMENT_ROLE,
                )
                db.add(assignment)
            assignment.consumed_baseline = _to_decimal(student.hours_consumed)
        tutor.hours_due = _ZERO
        db.flush()

    logger.info(
        "Tutor balance reset",
        extra={"tutor_id": tutor_id, "updated_students": len(students)},
    )
    return len(students)


__all__ = ["CompletionResult", "complete_booking", "reset_tutor_balance", "session_hours"]
