from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from tutorbooking.core.auth import Viewer
from tutorbooking.core.errors import Forbidden, InvalidRequest, NotFound
from tutorbooking.db import models
from tutorbooking.services import availability_service, slot_allocator

ROME = ZoneInfo("Europe/Rome")
NOW = datetime(2030, 3, 1, 8, 0, tzinfo=timezone.utc)


def create_tutor(session, email="tutor@example.com"):
    tutor = models.Tutor(display_name="Giulia", email=email)
    session.add(tutor)
    session.commit()
    return tutor


def test_add_block_validates_range(db_session):
    tutor = create_tutor(db_session)
    start = NOW + timedelta(days=1)

    with pytest.raises(InvalidRequest) as exc:
        availability_service.add_availability_block(db_session, tutor.id, start, start)
    assert exc.value.code == "invalid_range"

    with pytest.raises(NotFound):
        availability_service.add_availability_block(
            db_session, 999, start, start + timedelta(hours=1)
        )

    block = availability_service.add_availability_block(
        db_session, tutor.id, start, start + timedelta(hours=2)
    )
    assert block.id is not None


def test_delete_block_respects_tutor_scope(db_session):
    owner = create_tutor(db_session)
    other = create_tutor(db_session, email="other@example.com")
    start = NOW + timedelta(days=1)
    block = availability_service.add_availability_block(
        db_session, owner.id, start, start + timedelta(hours=2)
    )

    with pytest.raises(Forbidden):
        availability_service.delete_availability_block(
            db_session, block.id, Viewer(email=other.email, is_admin=False, tutor_id=other.id)
        )
    availability_service.delete_availability_block(
        db_session, block.id, Viewer(email=owner.email, is_admin=False, tutor_id=owner.id)
    )
    assert db_session.query(models.AvailabilityBlock).count() == 0

    with pytest.raises(NotFound):
        availability_service.delete_availability_block(
            db_session, block.id, Viewer(email="admin@example.com", is_admin=True)
        )


def test_target_tutor_id():
    admin = Viewer(email="admin@example.com", is_admin=True)
    tutor = Viewer(email="t@example.com", is_admin=False, tutor_id=5)

    assert availability_service.target_tutor_id(admin, 9) == 9
    assert availability_service.target_tutor_id(tutor, 9) == 5
    with pytest.raises(NotFound):
        availability_service.target_tutor_id(admin, None)


def test_list_availability_returns_blocks_and_booked(db_session):
    tutor = create_tutor(db_session)
    start = NOW + timedelta(days=2)
    availability_service.add_availability_block(
        db_session, tutor.id, start, start + timedelta(hours=3)
    )
    availability_service.add_availability_block(
        db_session, tutor.id, NOW + timedelta(days=200), NOW + timedelta(days=200, hours=1)
    )
    slot_allocator.reserve_slot(
        db_session, tutor.email, start + timedelta(hours=1), "ripetizione", now=NOW
    )

    view = availability_service.list_availability(db_session, "TUTOR@example.com", now=NOW)

    assert view["tutor"]["id"] == tutor.id
    assert view["range"]["to"] - view["range"]["from"] == timedelta(days=90)
    assert view["blocks"] == [{"starts_at": start, "ends_at": start + timedelta(hours=3)}]
    assert view["booked"] == [
        {"starts_at": start + timedelta(hours=1), "ends_at": start + timedelta(hours=2)}
    ]
    assert view["duration_min"] == 60


def test_grid_follows_rome_wall_clock_across_dst():
    # Europe/Rome switches to summer time on 2030-03-31
    grid = availability_service.build_free_slot_grid(
        date(2030, 3, 29),
        date(2030, 4, 1),
        [0, 4],
        "09:00",
        "10:00",
        30,
        ROME,
    )

    assert [start.astimezone(ROME).strftime("%a %H:%M") for start, _ in grid] == [
        "Fri 09:00",
        "Fri 09:30",
        "Mon 09:00",
        "Mon 09:30",
    ]
    assert grid[0][0].hour == 8
    assert grid[2][0].hour == 7


@pytest.mark.parametrize(
    ("kwargs", "code"),
    [
        ({"date_to": date(2030, 2, 1)}, "invalid_range"),
        ({"date_to": date(2030, 9, 1)}, "range_too_large"),
        ({"days_of_week": [7, 9]}, "days_of_week"),
        ({"time_start": "nine"}, "time_format"),
    ],
)
def test_grid_rejects_bad_input(kwargs, code):
    params = {
        "date_from": date(2030, 3, 4),
        "date_to": date(2030, 3, 10),
        "days_of_week": [0],
        "time_start": "09:00",
        "time_end": "12:00",
        "slot_minutes": 30,
        "tz": ROME,
    }
    params.update(kwargs)
    with pytest.raises(InvalidRequest) as exc:
        availability_service.build_free_slot_grid(**params)
    assert exc.value.code == code


def test_grid_clamps_slot_length_and_caps_count():
    short = availability_service.build_free_slot_grid(
        date(2030, 3, 4), date(2030, 3, 4), [0], "09:00", "10:00", 1, ROME
    )
    assert len(short) == 6

    capped = availability_service.build_free_slot_grid(
        date(2030, 3, 4), date(2030, 6, 30), [0, 1, 2, 3, 4, 5, 6], "00:00", "23:50", 10, ROME
    )
    assert len(capped) == 500


def test_publish_free_slots_skips_booked_and_opens_blocks(db_session):
    tutor = create_tutor(db_session)
    day = date(2030, 3, 4)
    first = availability_service.publish_free_slots(
        db_session,
        tutor.id,
        date_from=day,
        date_to=day,
        days_of_week=[0],
        time_start="09:00",
        time_end="11:00",
        slot_minutes=60,
    )
    assert first == 2
    slots = db_session.query(models.CallSlot).order_by(models.CallSlot.starts_at).all()
    assert [s.status for s in slots] == [models.SlotStatus.free, models.SlotStatus.free]
    assert db_session.query(models.AvailabilityBlock).count() == 1

    nine_rome = datetime(2030, 3, 4, 9, 0, tzinfo=ROME)
    booked = slot_allocator.reserve_slot(db_session, tutor.email, nine_rome, "ripetizione", now=NOW)
    assert booked.id == slots[0].id

    again = availability_service.publish_free_slots(
        db_session,
        tutor.id,
        date_from=day,
        date_to=day,
        days_of_week=[0],
        time_start="09:00",
        time_end="11:00",
        slot_minutes=60,
    )
    assert again == 1
    db_session.refresh(booked)
    assert booked.status == models.SlotStatus.booked
    assert db_session.query(models.CallSlot).count() == 2
    assert db_session.query(models.AvailabilityBlock).count() == 1


def test_publish_without_matching_weekday_fails(db_session):
    tutor = create_tutor(db_session)

    with pytest.raises(InvalidRequest) as exc:
        availability_service.publish_free_slots(
            db_session,
            tutor.id,
            date_from=date(2030, 3, 4),
            date_to=date(2030, 3, 4),
            days_of_week=[3],
        )
    assert exc.value.code == "no_slots_generated"
