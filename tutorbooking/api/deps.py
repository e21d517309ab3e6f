from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session
from ..config import get_settings
from ..core.auth import Viewer, resolve_viewer
from ..core.errors import BookingEngineError
from ..core.security import decode_access_token
from ..db.session import get_db
from ..services.mail import BaseMailer, get_mailer


bearer_scheme = HTTPBearer(auto_error=False)


def as_http_error(exc: BookingEngineError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.code, "message": exc.message},
    )


def get_current_viewer(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> Viewer:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": "Could not validate credentials"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc
    email = payload.get("email") or payload.get("sub")
    if not email or "@" not in str(email):
        raise credentials_exception
    try:
        return resolve_viewer(db, str(email))
    except BookingEngineError as exc:
        raise as_http_error(exc) from exc


def require_admin(viewer: Annotated[Viewer, Depends(get_current_viewer)]) -> Viewer:
    if not viewer.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "message": "Admin only"},
        )
    return viewer


def get_mail_sender() -> BaseMailer:
    return get_mailer(get_settings())
