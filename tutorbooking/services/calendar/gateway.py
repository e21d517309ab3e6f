from abc import ABC, abstractmethod
from datetime import datetime
from ...config import Settings


class CalendarError(Exception):
    pass


class BaseCalendarGateway(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def create_event(
        self,
        summary: str,
        description: str,
        starts_at: datetime,
        ends_at: datetime,
        request_id: str,
    ) -> str | None:
        """Create the event and return its provider id."""
        raise NotImplementedError


def get_calendar_gateway(settings: Settings) -> BaseCalendarGateway:
    if settings.calendar_provider == "stub":
        from .stub import StubCalendarGateway

        return StubCalendarGateway(settings)
    if settings.calendar_provider == "google":
        from .google import GoogleCalendarGateway

        return GoogleCalendarGateway(settings)
    raise ValueError(f"Unsupported calendar provider {settings.calendar_provider}")
