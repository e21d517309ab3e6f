from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tutorbooking.core.errors import Conflict, InvalidRequest, NotFound
from tutorbooking.db import models
from tutorbooking.services import slot_allocator

NOW = datetime(2030, 3, 4, 6, 0, tzinfo=timezone.utc)
DAY = datetime(2030, 3, 4, tzinfo=timezone.utc)


def create_tutor(session, email="tutor@example.com"):
    tutor = models.Tutor(display_name="Tutor", email=email)
    session.add(tutor)
    session.commit()
    return tutor


def open_block(session, tutor, start_hour=9, end_hour=12):
    block = models.AvailabilityBlock(
        tutor_id=tutor.id,
        starts_at=DAY + timedelta(hours=start_hour),
        ends_at=DAY + timedelta(hours=end_hour),
    )
    session.add(block)
    session.commit()
    return block


def reserve(session, hour, minute=0, email="tutor@example.com"):
    return slot_allocator.reserve_slot(
        session,
        email,
        DAY + timedelta(hours=hour, minutes=minute),
        "ripetizione",
        now=NOW,
    )


def test_reserve_inside_block_then_overlap_conflict(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)

    first = reserve(db_session, 10)
    assert first.status == models.SlotStatus.booked
    assert first.duration_min == 60
    assert first.ends_at.replace(tzinfo=timezone.utc) == DAY + timedelta(hours=11)

    with pytest.raises(Conflict) as exc:
        reserve(db_session, 10, 30)
    assert exc.value.code == "already_booked"

    second = reserve(db_session, 11)
    assert second.id != first.id

    booked = db_session.execute(
        select(models.CallSlot).where(models.CallSlot.status == models.SlotStatus.booked)
    ).scalars().all()
    assert len(booked) == 2


def test_same_start_twice_conflicts(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)

    reserve(db_session, 9)
    with pytest.raises(Conflict):
        reserve(db_session, 9)


def test_outside_availability_rejected(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)

    with pytest.raises(InvalidRequest) as exc:
        reserve(db_session, 11, 30)
    assert exc.value.code == "outside_availability"
    assert db_session.query(models.CallSlot).count() == 0


def test_time_in_past_rejected(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor, start_hour=0, end_hour=12)

    with pytest.raises(InvalidRequest) as exc:
        reserve(db_session, 5)
    assert exc.value.code == "time_in_past"


def test_unknown_tutor_and_bad_email(db_session):
    with pytest.raises(NotFound):
        reserve(db_session, 10, email="nobody@example.com")
    with pytest.raises(InvalidRequest) as exc:
        reserve(db_session, 10, email="not-an-email")
    assert exc.value.code == "tutor_email"


def test_tutor_email_lookup_is_case_insensitive(db_session):
    tutor = create_tutor(db_session, email="Mario.Rossi@Example.com")
    open_block(db_session, tutor)

    slot = reserve(db_session, 10, email="  mario.rossi@example.COM ")
    assert slot.tutor_id == tutor.id


def test_inactive_call_type_rejected(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)
    call_type = db_session.query(models.CallType).filter_by(slug="ripetizione").one()
    call_type.active = False
    db_session.commit()

    with pytest.raises(InvalidRequest) as exc:
        reserve(db_session, 10)
    assert exc.value.code == "call_type"


def test_free_slot_is_reused(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)
    call_type = db_session.query(models.CallType).one()
    free = models.CallSlot(
        tutor_id=tutor.id,
        call_type_id=call_type.id,
        starts_at=DAY + timedelta(hours=10),
        ends_at=DAY + timedelta(hours=10, minutes=30),
        duration_min=30,
        status=models.SlotStatus.free,
    )
    db_session.add(free)
    db_session.commit()

    slot = reserve(db_session, 10)
    assert slot.id == free.id
    assert slot.status == models.SlotStatus.booked
    assert slot.duration_min == 60
    assert db_session.query(models.CallSlot).count() == 1


def test_unique_collision_maps_to_conflict(db_session, monkeypatch):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)

    def collide(*_args, **_kwargs):
        raise IntegrityError(
            "INSERT INTO call_slots",
            {},
            Exception("UNIQUE constraint failed: call_slots.tutor_id, call_slots.starts_at"),
        )

    monkeypatch.setattr(db_session, "flush", collide)
    with pytest.raises(Conflict) as exc:
        reserve(db_session, 10)
    assert exc.value.code == "already_booked"


def test_failed_reservation_rolls_back(db_session):
    tutor = create_tutor(db_session)
    open_block(db_session, tutor)
    reserve(db_session, 10)

    with pytest.raises(Conflict):
        reserve(db_session, 10, 30)
    assert db_session.query(models.CallSlot).count() == 1
