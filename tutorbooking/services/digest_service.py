from __future__ import annotations

import hmac
import logging
from datetime import date, datetime, timedelta
from uuid import uuid4

from sqlalchemy.orm import Session, selectinload

from ..config import Settings, get_settings
from ..core.auth import Viewer, ensure_tutor_scope
from ..core.errors import DependencyError, InvalidRequest, NotFound
from ..core.security import is_scheduler_token
from ..core.timeutils import (
    ensure_utc,
    is_rome_midnight,
    parse_rome_day,
    rome_day_range,
    to_rome,
    utc_now,
)
from ..db import models, schemas
from ..db.models.booking import BookingStatus
from .mail import Attachment, BaseMailer, MailError, OutgoingEmail, get_mailer
from .template_service import render_template

logger = logging.getLogger(__name__)

_WEEKDAYS = ["lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica"]
_MONTHS = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]


def is_trigger_authorized(
    settings: Settings,
    *,
    bearer: str | None,
    header_secret: str | None,
    query_secret: str | None,
    scheduler_token: str | None,
) -> bool:
    """Shared-secret check for the digest trigger.

    Without a configured secret only the per-process scheduler token is
    trusted, except outside production where the check is open.
    """

    secret = settings.cron_secret
    if not secret:
        return not settings.is_production or is_scheduler_token(scheduler_token)
    provided = bearer or header_secret or query_secret or ""
    return hmac.compare_digest(provided.encode(), secret.encode())


def format_day_label(day: date) -> str:
    label = f"{_WEEKDAYS[day.weekday()]} {day.day:02d} {_MONTHS[day.month - 1]}"
    return label[:1].upper() + label[1:]


def _time_label(value: datetime) -> str:
    return to_rome(value).strftime("%H:%M")


def _tutor_label(booking: models.Booking) -> str:
    return booking.tutor.label if booking.tutor else "—"


def _call_label(booking: models.Booking) -> str:
    return booking.call_type.label if booking.call_type else "call"


def load_day_bookings(db: Session, day: date) -> list[models.Booking]:
    start, end = rome_day_range(day)
    return (
        db.query(models.Booking)
        .join(models.CallSlot, models.Booking.slot_id == models.CallSlot.id)
        .options(
            selectinload(models.Booking.slot),
            selectinload(models.Booking.tutor),
            selectinload(models.Booking.call_type),
        )
        .filter(models.Booking.status != BookingStatus.cancelled)
        .filter(models.CallSlot.starts_at >= start)
        .filter(models.CallSlot.starts_at < end)
        .order_by(models.CallSlot.starts_at)
        .all()
    )


def build_text_digest(bookings: list[models.Booking], title_date: str) -> str:
    if not bookings:
        return f"Prenotazioni {title_date}\n\nNessuna prenotazione per oggi."
    lines = []
    for booking in bookings:
        note = f" | Note: {booking.note}" if booking.note else ""
        lines.append(
            f"- {_time_label(booking.slot.starts_at)} | {_call_label(booking)} | "
            f"{booking.full_name or 'Senza nome'} | {booking.email or '—'} | "
            f"Tutor: {_tutor_label(booking)}{note}"
        )
    return "\n".join([f"Prenotazioni {title_date}", "", *lines])


def build_html_digest(bookings: list[models.Booking], title_date: str) -> str:
    rows = [
        [
            _time_label(booking.slot.starts_at),
            _call_label(booking),
            booking.full_name or "Senza nome",
            booking.email or "—",
            _tutor_label(booking),
            booking.note or "—",
        ]
        for booking in bookings
    ]
    return render_template("email/daily_digest.html", title_date=title_date, rows=rows)


def run_daily_digest(
    db: Session,
    *,
    mailer: BaseMailer | None = None,
    force: bool = False,
    day: str | None = None,
    now: datetime | None = None,
) -> schemas.DigestResult:
    """Send the Rome-day booking digest. Read-only; safe to re-run with ``force``."""

    settings = get_settings()
    current = ensure_utc(now or utc_now())
    if not force and not is_rome_midnight(current):
        return schemas.DigestResult(skipped="not_midnight_rome")
    recipients = settings.digest_recipients
    if not recipients:
        raise DependencyError("mail_not_configured", "No digest recipients configured")

    target_day = parse_rome_day(day, current)
    bookings = load_day_bookings(db, target_day)
    title_date = format_day_label(target_day)
    message = OutgoingEmail(
        to=recipients,
        subject=f"Prenotazioni {title_date} ({len(bookings)})",
        text=build_text_digest(bookings, title_date),
        html=build_html_digest(bookings, title_date),
    )
    mailer = mailer or get_mailer(settings)
    try:
        mailer.send(message)
    except MailError as exc:
        logger.error("Daily digest delivery failed", extra={"ymd": target_day.isoformat()})
        raise DependencyError("mail_failed", str(exc)) from exc
    logger.info("Daily digest sent", extra={"ymd": target_day.isoformat(), "count": len(bookings)})
    return schemas.DigestResult(ymd=target_day.isoformat(), count=len(bookings))


def _relative_label(starts_at: datetime, now: datetime) -> str:
    delta = ensure_utc(starts_at) - now
    if delta <= timedelta(0):
        return "ora"
    minutes = round(delta.total_seconds() / 60)
    if minutes < 60:
        return f"tra {minutes} min"
    hours, rest = divmod(minutes, 60)
    return f"tra {hours}h" if rest == 0 else f"tra {hours}h {rest}m"


def _day_phrase(starts_at: datetime, now: datetime) -> str:
    local_start = to_rome(starts_at)
    days = (local_start.date() - to_rome(now).date()).days
    hour_label = local_start.strftime("%H:%M").replace(":00", "")
    if days == 0:
        return f"oggi alle {hour_label}"
    if days == 1:
        return f"domani alle {hour_label}"
    return f"{_WEEKDAYS[local_start.weekday()]} alle {hour_label}"


def _ics_stamp(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y%m%dT%H%M%SZ")


def build_ics(starts_at: datetime, duration_min: int, summary: str, description: str, now: datetime) -> str:
    ends_at = ensure_utc(starts_at) + timedelta(minutes=duration_min)
    return "\r\n".join(
        [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//Theoremz//Booking Reminder//EN",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            "BEGIN:VEVENT",
            f"UID:theoremz-{uuid4().hex}@theoremz.com",
            f"DTSTAMP:{_ics_stamp(now)}",
            f"DTSTART:{_ics_stamp(starts_at)}",
            f"DTEND:{_ics_stamp(ends_at)}",
            f"SUMMARY:{summary}",
            "DESCRIPTION:" + description.replace("\r\n", "\\n").replace("\n", "\\n"),
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )


def send_booking_reminder(
    db: Session,
    booking_id: int,
    viewer: Viewer,
    *,
    mailer: BaseMailer | None = None,
    now: datetime | None = None,
) -> str:
    """Email the student a reminder with an ``.ics`` attachment; returns the recipient."""

    current = ensure_utc(now or utc_now())
    booking = db.get(models.Booking, booking_id)
    if booking is None or booking.slot is None:
        raise NotFound("booking", "Booking not found")
    ensure_tutor_scope(viewer, booking.tutor_id)
    if not booking.email or "@" not in booking.email:
        raise InvalidRequest("email_missing", "Booking has no email")

    slot = booking.slot
    call_label = booking.call_type.name if booking.call_type else "call Theoremz"
    when = to_rome(slot.starts_at)
    when_label = f"{_WEEKDAYS[when.weekday()]} {when:%d/%m %H:%M}"
    day_phrase = _day_phrase(slot.starts_at, current)
    relative = _relative_label(slot.starts_at, current)
    greeting = f"Ciao {booking.full_name or ''}".strip()

    lines = [
        greeting,
        f"Ti ricordo la tua {call_label} {day_phrase} ({relative}).",
        f"Quando: {when_label}.",
        "Qualche minuto prima riceverai il link per collegarti.",
    ]
    if booking.note:
        lines.append(f"Note che ci hai lasciato: {booking.note}")
    lines.append("Se non puoi più partecipare, rispondi a questa mail per riprogrammare.")
    html = render_template(
        "email/booking_reminder.html",
        greeting=greeting,
        call_label=call_label,
        day_phrase=day_phrase,
        relative=relative,
        when_label=when_label,
        note=booking.note,
    )
    ics = build_ics(
        slot.starts_at,
        slot.duration_min or get_settings().default_duration_min,
        f"{call_label} Theoremz",
        f"Tutor: {_tutor_label(booking)}",
        current,
    )
    message = OutgoingEmail(
        to=[booking.email],
        subject=f"Promemoria: {call_label} {day_phrase}",
        text="\n".join(lines),
        html=html,
        attachments=[Attachment("theoremz-call.ics", ics, "text/calendar")],
    )
    mailer = mailer or get_mailer(get_settings())
    try:
        mailer.send(message)
    except MailError as exc:
        logger.error("Booking reminder delivery failed", extra={"booking_id": booking_id})
        raise DependencyError("mail_failed", str(exc)) from exc
    logger.info("Booking reminder sent", extra={"booking_id": booking_id})
    return booking.email


__all__ = [
    "build_html_digest",
    "build_ics",
    "build_text_digest",
    "format_day_label",
    "is_trigger_authorized",
    "load_day_bookings",
    "run_daily_digest",
    "send_booking_reminder",
]
