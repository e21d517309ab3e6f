from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...core.auth import Viewer
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import schemas
from ...services import hours_ledger

router = APIRouter(prefix="/tutors", tags=["tutors"])


@router.post("/{tutor_id}/reset-balance", response_model=schemas.TutorBalanceReset)
def reset_balance(
    tutor_id: int,
    db: Session = Depends(get_db),
    _: Viewer = Depends(deps.require_admin),
):
    try:
        updated = hours_ledger.reset_tutor_balance(db, tutor_id)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.TutorBalanceReset(tutor_id=tutor_id, updated_students=updated)
