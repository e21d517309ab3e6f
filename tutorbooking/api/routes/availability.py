from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from ...api import deps
from ...core.auth import Viewer
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import schemas
from ...services import availability_service

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=schemas.AvailabilityView)
def get_availability(
    tutor_email: str,
    range_days: int | None = None,
    db: Session = Depends(get_db),
):
    try:
        view = availability_service.list_availability(db, tutor_email, range_days=range_days)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.AvailabilityView(**view)


@router.post("/blocks", response_model=schemas.AvailabilityBlock, status_code=status.HTTP_201_CREATED)
def add_block(
    payload: schemas.AvailabilityBlockCreate,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    try:
        tutor_id = availability_service.target_tutor_id(viewer, payload.tutor_id)
        return availability_service.add_availability_block(
            db, tutor_id, payload.starts_at, payload.ends_at
        )
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_block(
    block_id: int,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    try:
        availability_service.delete_availability_block(db, block_id, viewer)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/publish", response_model=schemas.FreeSlotGridResponse)
def publish_free_slots(
    payload: schemas.FreeSlotGridRequest,
    db: Session = Depends(get_db),
    viewer: Viewer = Depends(deps.get_current_viewer),
):
    try:
        tutor_id = availability_service.target_tutor_id(viewer, payload.tutor_id)
        created = availability_service.publish_free_slots(
            db,
            tutor_id,
            date_from=payload.date_from,
            date_to=payload.date_to,
            days_of_week=payload.days_of_week,
            time_start=payload.time_start,
            time_end=payload.time_end,
            slot_minutes=payload.slot_minutes,
            call_type_slug=payload.call_type_slug,
        )
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
    return schemas.FreeSlotGridResponse(tutor_id=tutor_id, slots=created)
