"""SMTP delivery over implicit TLS (port 465) or STARTTLS (any other port)."""

import logging
import smtplib
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .gateway import BaseMailer, MailError, OutgoingEmail

logger = logging.getLogger(__name__)


class SmtpMailer(BaseMailer):
    def _from_address(self) -> str:
        settings = self.settings
        if settings.mail_from.strip():
            return settings.mail_from.strip()
        if settings.smtp_user.strip():
            return f"Theoremz <{settings.smtp_user.strip()}>"
        return "Theoremz <noreply@localhost>"

    def _build(self, message: OutgoingEmail) -> MIMEMultipart:
        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.text, "plain", "utf-8"))
        if message.html:
            body.attach(MIMEText(message.html, "html", "utf-8"))
        if not message.attachments:
            envelope = body
        else:
            envelope = MIMEMultipart("mixed")
            envelope.attach(body)
            for attachment in message.attachments:
                maintype, _, subtype = attachment.content_type.partition("/")
                part = MIMEBase(maintype, subtype or "plain")
                part.set_payload(attachment.content.encode("utf-8"))
                encoders.encode_base64(part)
                part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
                envelope.attach(part)
        envelope["Subject"] = message.subject
        envelope["From"] = self._from_address()
        envelope["To"] = ", ".join(message.to)
        return envelope

    def send(self, message: OutgoingEmail) -> None:
        settings = self.settings
        user = settings.smtp_user.strip()
        password = settings.smtp_password.strip()
        if not user or not password:
            raise MailError("SMTP_USER or SMTP_PASSWORD not set")
        if not message.to:
            raise MailError("No recipients")
        envelope = self._build(message)
        try:
            implicit_tls = settings.smtp_port == 465
            smtp_cls = smtplib.SMTP_SSL if implicit_tls else smtplib.SMTP
            with smtp_cls(settings.smtp_host, settings.smtp_port, timeout=10) as server:
                if not implicit_tls:
                    server.starttls()
                server.login(user, password)
                server.sendmail(user, message.to, envelope.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(f"SMTP delivery failed: {exc}") from exc
        logger.info("Email sent", extra={"to": message.to, "subject": message.subject})
