import logging
from datetime import datetime

import httpx

from .gateway import BaseCalendarGateway, CalendarError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError as exc:
        raise CalendarError(f"Google returned a non-JSON response ({response.status_code})") from exc
    if not isinstance(body, dict):
        raise CalendarError("Google returned an unexpected JSON payload")
    return body


class GoogleCalendarGateway(BaseCalendarGateway):
    def _access_token(self, client: httpx.Client) -> str:
        response = client.post(
            TOKEN_URL,
            data={
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "refresh_token": self.settings.google_refresh_token,
                "grant_type": "refresh_token",
            },
        )
        response.raise_for_status()
        token = _json_body(response).get("access_token")
        if not token:
            raise CalendarError("Google token response has no access_token")
        return token

    def create_event(
        self,
        summary: str,
        description: str,
        starts_at: datetime,
        ends_at: datetime,
        request_id: str,
    ) -> str | None:
        settings = self.settings
        if not (
            settings.google_client_id
            and settings.google_client_secret
            and settings.google_refresh_token
        ):
            logger.warning("Google Calendar credentials are not configured; skipping event")
            return None
        url = EVENTS_URL.format(calendar_id=settings.google_calendar_id)
        payload = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": starts_at.isoformat(), "timeZone": settings.timezone},
            "end": {"dateTime": ends_at.isoformat(), "timeZone": settings.timezone},
            "conferenceData": {"createRequest": {"requestId": request_id}},
        }
        try:
            with httpx.Client(timeout=10) as client:
                token = self._access_token(client)
                response = client.post(
                    url,
                    params={"conferenceDataVersion": 1},
                    headers={"Authorization": f"Bearer {token}"},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CalendarError(f"Google Calendar request failed: {exc}") from exc
        event_id = _json_body(response).get("id")
        logger.info("Created Google Calendar event", extra={"event_id": event_id})
        return event_id
