"""Error taxonomy shared by the booking services and the HTTP layer."""

from fastapi import status


class BookingEngineError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code


class InvalidRequest(BookingEngineError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(BookingEngineError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(BookingEngineError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(BookingEngineError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT


class DependencyError(BookingEngineError):
    status_code = status.HTTP_502_BAD_GATEWAY


__all__ = [
    "BookingEngineError",
    "InvalidRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "Conflict",
    "DependencyError",
]
