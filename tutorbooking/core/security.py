import hmac
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict

from jose import jwt

from ..config import get_settings

ALGORITHM = "HS256"


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_min))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])


# Per-process value accepted in the scheduler signal header. Never configured or exposed.
SCHEDULER_TOKEN = secrets.token_urlsafe(32)


def is_scheduler_token(value: str | None) -> bool:
    if not value:
        return False
    return hmac.compare_digest(value.encode(), SCHEDULER_TOKEN.encode())
