from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from ...config import Settings


class MailError(Exception):
    pass


@dataclass(slots=True)
class Attachment:
    filename: str
    content: str
    content_type: str = "text/plain"


@dataclass(slots=True)
class OutgoingEmail:
    to: list[str]
    subject: str
    text: str
    html: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


class BaseMailer(ABC):
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def send(self, message: OutgoingEmail) -> None:
        """Deliver the message or raise :class:`MailError`."""
        raise NotImplementedError


def get_mailer(settings: Settings) -> BaseMailer:
    if settings.mail_provider == "stub":
        from .stub import StubMailer

        return StubMailer(settings)
    if settings.mail_provider == "smtp":
        from .smtp import SmtpMailer

        return SmtpMailer(settings)
    raise ValueError(f"Unsupported mail provider {settings.mail_provider}")
