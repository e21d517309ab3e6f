from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session
from ..config import get_settings
from ..db import models
from .errors import Forbidden


@dataclass(frozen=True, slots=True)
class Viewer:
    email: str | None
    is_admin: bool
    tutor_id: int | None = None

    def can_access_tutor(self, tutor_id: int | None) -> bool:
        return self.is_admin or (self.tutor_id is not None and self.tutor_id == tutor_id)


SYSTEM_VIEWER = Viewer(email=None, is_admin=True)


def resolve_viewer(db: Session, email: str) -> Viewer:
    """Map a verified email to an admin or tutor-scoped viewer."""

    normalized = email.strip().lower()
    tutor = (
        db.query(models.Tutor)
        .filter(func.lower(models.Tutor.email) == normalized)
        .first()
    )
    is_admin = normalized in get_settings().admin_email_set
    if tutor is None and not is_admin:
        raise Forbidden("forbidden", "Caller is neither an admin nor a tutor")
    return Viewer(email=normalized, is_admin=is_admin, tutor_id=tutor.id if tutor else None)


def ensure_tutor_scope(viewer: Viewer, tutor_id: int | None) -> None:
    if not viewer.can_access_tutor(tutor_id):
        raise Forbidden("forbidden", "Booking belongs to another tutor")
