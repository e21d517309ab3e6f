from __future__ import annotations

import logging

from .gateway import BaseMailer, OutgoingEmail

logger = logging.getLogger(__name__)


class StubMailer(BaseMailer):
    """Keeps sent messages in memory instead of delivering them."""

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.outbox: list[OutgoingEmail] = []

    def send(self, message: OutgoingEmail) -> None:
        self.outbox.append(message)
        logger.info("Email (stub)", extra={"to": message.to, "subject": message.subject})
