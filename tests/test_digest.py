from datetime import date, datetime, timedelta, timezone

import pytest

from tutorbooking.config import get_settings
from tutorbooking.core.auth import Viewer
from tutorbooking.core.errors import DependencyError, Forbidden, InvalidRequest
from tutorbooking.core.security import SCHEDULER_TOKEN
from tutorbooking.core.timeutils import ROME, rome_day_range
from tutorbooking.db import models
from tutorbooking.services import digest_service
from tutorbooking.services.mail import BaseMailer, MailError
from tutorbooking.services.mail.stub import StubMailer

MIDNIGHT_ROME = datetime(2030, 3, 3, 23, 10, tzinfo=timezone.utc)


class BrokenMailer(BaseMailer):
    def send(self, message):
        raise MailError("smtp down")


def create_booking(session, local_start, full_name="Luca Bianchi", note=None, status=None, email="luca@example.com"):
    tutor = session.query(models.Tutor).first()
    if tutor is None:
        tutor = models.Tutor(display_name="Giulia", email="giulia@example.com")
        session.add(tutor)
        session.commit()
    call_type = session.query(models.CallType).one()
    starts_at = local_start.replace(tzinfo=ROME).astimezone(timezone.utc)
    slot = models.CallSlot(
        tutor_id=tutor.id,
        call_type_id=call_type.id,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=60),
        duration_min=60,
        status=models.SlotStatus.booked,
    )
    session.add(slot)
    session.commit()
    booking = models.Booking(
        slot_id=slot.id,
        tutor_id=tutor.id,
        call_type_id=call_type.id,
        full_name=full_name,
        email=email,
        note=note,
        status=status or models.BookingStatus.confirmed,
    )
    session.add(booking)
    session.commit()
    return booking


def test_skips_outside_rome_midnight(db_session, configure):
    configure(DAILY_BOOKINGS_TO="staff@example.com")
    mailer = StubMailer(get_settings())

    result = digest_service.run_daily_digest(
        db_session, mailer=mailer, now=datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc)
    )

    assert result.skipped == "not_midnight_rome"
    assert mailer.outbox == []


def test_sends_digest_at_rome_midnight(db_session, configure):
    configure(DAILY_BOOKINGS_TO="staff@example.com, boss@example.com")
    create_booking(db_session, datetime(2030, 3, 4, 15, 0), full_name="Anna")
    create_booking(db_session, datetime(2030, 3, 4, 9, 30), note="<b>limiti</b>")
    create_booking(db_session, datetime(2030, 3, 4, 11, 0), status=models.BookingStatus.cancelled)
    create_booking(db_session, datetime(2030, 3, 5, 0, 30))
    mailer = StubMailer(get_settings())

    result = digest_service.run_daily_digest(db_session, mailer=mailer, now=MIDNIGHT_ROME)

    assert result.ok and result.skipped is None
    assert result.ymd == "2030-03-04"
    assert result.count == 2
    message = mailer.outbox[0]
    assert message.to == ["staff@example.com", "boss@example.com"]
    assert message.subject == "Prenotazioni Lunedì 04 marzo (2)"
    lines = message.text.splitlines()
    assert lines[2].startswith("- 09:30 | Ripetizione | Luca Bianchi")
    assert lines[3].startswith("- 15:00 | Ripetizione | Anna")
    assert "Tutor: Giulia" in lines[3]
    assert "&lt;b&gt;limiti&lt;/b&gt;" in message.html


def test_force_and_explicit_date(db_session, configure):
    configure(DAILY_BOOKINGS_TO="staff@example.com")
    create_booking(db_session, datetime(2030, 3, 6, 10, 0))
    mailer = StubMailer(get_settings())

    result = digest_service.run_daily_digest(
        db_session,
        mailer=mailer,
        force=True,
        day="2030-03-06",
        now=datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc),
    )

    assert result.ymd == "2030-03-06"
    assert result.count == 1


def test_empty_day_still_sends(db_session, configure):
    configure(DAILY_BOOKINGS_TO="staff@example.com")
    mailer = StubMailer(get_settings())

    result = digest_service.run_daily_digest(db_session, mailer=mailer, now=MIDNIGHT_ROME)

    assert result.count == 0
    assert "Nessuna prenotazione" in mailer.outbox[0].text


def test_mail_failure_is_dependency_error(db_session, configure):
    configure(DAILY_BOOKINGS_TO="staff@example.com")

    with pytest.raises(DependencyError) as exc:
        digest_service.run_daily_digest(
            db_session, mailer=BrokenMailer(get_settings()), now=MIDNIGHT_ROME
        )
    assert exc.value.code == "mail_failed"


def test_missing_recipients(db_session, configure):
    configure(DAILY_BOOKINGS_TO="", SMTP_USER="")

    with pytest.raises(DependencyError) as exc:
        digest_service.run_daily_digest(db_session, force=True, now=MIDNIGHT_ROME)
    assert exc.value.code == "mail_not_configured"


def test_rome_day_range_handles_dst():
    start, end = rome_day_range(date(2030, 3, 31))
    assert end - start == timedelta(hours=23)
    start, end = rome_day_range(date(2030, 10, 27))
    assert end - start == timedelta(hours=25)
    start, _ = rome_day_range(date(2030, 7, 1))
    assert start == datetime(2030, 6, 30, 22, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("env", "kwargs", "expected"),
    [
        ({"CRON_SECRET": "s3cret"}, {"bearer": "s3cret"}, True),
        ({"CRON_SECRET": "s3cret"}, {"header_secret": "s3cret"}, True),
        ({"CRON_SECRET": "s3cret"}, {"query_secret": "s3cret"}, True),
        ({"CRON_SECRET": "s3cret"}, {"bearer": "wrong"}, False),
        ({"CRON_SECRET": "s3cret"}, {"scheduler_token": SCHEDULER_TOKEN}, False),
        ({"CRON_SECRET": "", "ENV": "production"}, {"scheduler_token": SCHEDULER_TOKEN}, True),
        ({"CRON_SECRET": "", "ENV": "production"}, {"scheduler_token": "anything"}, False),
        ({"CRON_SECRET": "", "ENV": "production"}, {}, False),
        ({"CRON_SECRET": "", "ENV": "dev"}, {}, True),
    ],
)
def test_trigger_authorization(configure, env, kwargs, expected):
    settings = configure(**env)
    params = {"bearer": None, "header_secret": None, "query_secret": None, "scheduler_token": None}
    params.update(kwargs)

    assert digest_service.is_trigger_authorized(settings, **params) is expected


def test_booking_reminder_attaches_ics(db_session, configure):
    settings = configure()
    booking = create_booking(db_session, datetime(2030, 3, 4, 18, 0), note="Integrali")
    mailer = StubMailer(settings)
    now = datetime(2030, 3, 4, 14, 30, tzinfo=timezone.utc)

    sent_to = digest_service.send_booking_reminder(
        db_session, booking.id, Viewer(email="admin@example.com", is_admin=True), mailer=mailer, now=now
    )

    assert sent_to == "luca@example.com"
    message = mailer.outbox[0]
    assert message.subject == "Promemoria: Ripetizione oggi alle 18"
    assert "(tra 2h 30m)" in message.text
    assert "Integrali" in message.text
    attachment = message.attachments[0]
    assert attachment.filename.endswith(".ics")
    assert attachment.content_type == "text/calendar"
    assert "DTSTART:20300304T170000Z" in attachment.content
    assert "DTEND:20300304T180000Z" in attachment.content


def test_booking_reminder_requires_email(db_session, configure):
    configure()
    booking = create_booking(db_session, datetime(2030, 3, 4, 18, 0), email="")

    with pytest.raises(InvalidRequest) as exc:
        digest_service.send_booking_reminder(
            db_session, booking.id, Viewer(email="admin@example.com", is_admin=True)
        )
    assert exc.value.code == "email_missing"


def test_booking_reminder_scope(db_session, configure):
    configure()
    booking = create_booking(db_session, datetime(2030, 3, 4, 18, 0))

    with pytest.raises(Forbidden):
        digest_service.send_booking_reminder(
            db_session, booking.id, Viewer(email="x@example.com", is_admin=False, tutor_id=999)
        )


def test_reminder_html_escapes_student_text(db_session, configure):
    settings = configure()
    booking = create_booking(
        db_session, datetime(2030, 3, 5, 18, 0), full_name="<Luca>", note="<script>x</script>"
    )
    mailer = StubMailer(settings)

    digest_service.send_booking_reminder(
        db_session,
        booking.id,
        Viewer(email="admin@example.com", is_admin=True),
        mailer=mailer,
        now=datetime(2030, 3, 4, 14, 30, tzinfo=timezone.utc),
    )

    html = mailer.outbox[0].html
    assert "Ciao &lt;Luca&gt;," in html
    assert "Note: &lt;script&gt;x&lt;/script&gt;" in html
    assert "<script>" not in html
    assert "domani alle 18" in html
