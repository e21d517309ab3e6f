from __future__ import annotations

import logging
from datetime import datetime

from .gateway import BaseCalendarGateway

logger = logging.getLogger(__name__)


class StubCalendarGateway(BaseCalendarGateway):
    """Calendar stub that only logs the event it would have created."""

    def create_event(
        self,
        summary: str,
        description: str,
        starts_at: datetime,
        ends_at: datetime,
        request_id: str,
    ) -> str | None:
        logger.info(
            "Calendar event (stub)",
            extra={"summary": summary, "starts_at": starts_at.isoformat(), "request_id": request_id},
        )
        return f"stub-{request_id}"
