from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session
from ...api import deps
from ...config import get_settings
from ...core.constants import CRON_SECRET_HEADER, SCHEDULER_SIGNAL_HEADER
from ...core.errors import BookingEngineError
from ...db.session import get_db
from ...db import schemas
from ...services import digest_service
from ...services.mail import BaseMailer

router = APIRouter(prefix="/cron", tags=["cron"])


def _bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


@router.api_route("/daily-bookings", methods=["GET", "POST"], response_model=schemas.DigestResult)
def daily_bookings(
    force: bool = False,
    date: str | None = None,
    secret: str | None = Query(default=None),
    authorization: str | None = Header(default=None),
    x_cron_secret: str | None = Header(default=None, alias=CRON_SECRET_HEADER),
    x_scheduler_signal: str | None = Header(default=None, alias=SCHEDULER_SIGNAL_HEADER),
    db: Session = Depends(get_db),
    mailer: BaseMailer = Depends(deps.get_mail_sender),
):
    authorized = digest_service.is_trigger_authorized(
        get_settings(),
        bearer=_bearer_token(authorization),
        header_secret=x_cron_secret,
        query_secret=secret,
        scheduler_token=x_scheduler_signal,
    )
    if not authorized:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Invalid cron secret"},
        )
    try:
        return digest_service.run_daily_digest(db, mailer=mailer, force=force, day=date)
    except BookingEngineError as exc:
        raise deps.as_http_error(exc) from exc
