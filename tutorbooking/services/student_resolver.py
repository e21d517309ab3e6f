"""Decide which student pays for a completed booking.

Candidates are tried in a fixed priority order and the first hit wins:

1. an explicit student id supplied by the caller;
2. a student whose own or parent email matches the booking email;
3. among students assigned to the booking's tutor (directly or through a
   ``TutorAssignment``) with hours left, the one with the largest balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum as PyEnum

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..db import models


class MatchKind(str, PyEnum):
    explicit = "explicit"
    email = "email"
    assignment_fallback = "assignment_fallback"
    no_match = "no_match"


@dataclass(frozen=True, slots=True)
class StudentMatch:
    kind: MatchKind
    student: models.Student | None = None

    @property
    def matched(self) -> bool:
        return self.student is not None


NO_MATCH = StudentMatch(MatchKind.no_match)


def match_explicit(db: Session, student_id: int) -> StudentMatch:
    student = db.get(models.Student, student_id)
    if student is None:
        raise NotFound("student", "Student not found")
    return StudentMatch(MatchKind.explicit, student)


def match_by_email(db: Session, email: str | None) -> StudentMatch:
    normalized = (email or "").strip().lower()
    if not normalized:
        return NO_MATCH
    student = (
        db.execute(
            select(models.Student)
            .where(
                or_(
                    func.lower(models.Student.student_email) == normalized,
                    func.lower(models.Student.parent_email) == normalized,
                )
            )
            .order_by(models.Student.id)
            .limit(1)
        )
        .scalars()
        .first()
    )
    if student is None:
        return NO_MATCH
    return StudentMatch(MatchKind.email, student)


def match_assigned_with_hours(db: Session, tutor_id: int | None) -> StudentMatch:
    if tutor_id is None:
        return NO_MATCH
    assigned_ids = select(models.TutorAssignment.student_id).where(
        models.TutorAssignment.tutor_id == tutor_id
    )
    student = (
        db.execute(
            select(models.Student)
            .where(
                or_(
                    models.Student.assigned_tutor_id == tutor_id,
                    models.Student.id.in_(assigned_ids),
                ),
                models.Student.hours_paid > 0,
            )
            .order_by(models.Student.hours_paid.desc(), models.Student.id)
            .limit(1)
        )
        .scalars()
        .first()
    )
    if student is None:
        return NO_MATCH
    return StudentMatch(MatchKind.assignment_fallback, student)


def resolve_student(
    db: Session,
    booking: models.Booking,
    explicit_student_id: int | None = None,
) -> StudentMatch:
    if explicit_student_id is not None:
        return match_explicit(db, explicit_student_id)
    match = match_by_email(db, booking.email)
    if match.matched:
        return match
    return match_assigned_with_hours(db, booking.tutor_id)


__all__ = [
    "MatchKind",
    "NO_MATCH",
    "StudentMatch",
    "match_assigned_with_hours",
    "match_by_email",
    "match_explicit",
    "resolve_student",
]
