from .gateway import Attachment, BaseMailer, MailError, OutgoingEmail, get_mailer

__all__ = ["Attachment", "BaseMailer", "MailError", "OutgoingEmail", "get_mailer"]
