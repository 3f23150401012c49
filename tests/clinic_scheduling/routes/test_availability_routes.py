import os
from datetime import datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_scheduling.database import Base  # noqa: E402
from clinic_scheduling.models.appointment import Appointment  # noqa: E402
from clinic_scheduling.models.availability import DentistSchedule  # noqa: E402
from clinic_scheduling.models.user import User  # noqa: E402
from clinic_scheduling.routes.availability_routes import (  # noqa: E402
    CreateScheduleRequest,
    UpdateScheduleRequest,
    create_dentist_schedule,
    list_available_slots,
    list_dentist_schedules,
    update_dentist_schedule,
)
from clinic_scheduling.scheduling.locks import BookingLockTable  # noqa: E402
from clinic_scheduling.scheduling.service import SchedulingService  # noqa: E402
from clinic_scheduling.scheduling.store import SqlAlchemyScheduleStore  # noqa: E402


@pytest.fixture
def schedule_db(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('clinic_scheduling.routes.availability_routes.ensure_database_ready', lambda: None)

    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, DentistSchedule.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def service(schedule_db) -> SchedulingService:
    return SchedulingService(SqlAlchemyScheduleStore(schedule_db), locks=BookingLockTable(), slot_duration_minutes=30)


def _monday_schedule(schedule_db, is_available: bool = True) -> DentistSchedule:
    return create_dentist_schedule(
        data=CreateScheduleRequest(
            dentist_id=7,
            day_of_week=1,
            start_time='09:00',
            end_time='17:00',
            is_available=is_available,
        ),
        db=schedule_db,
    )


def test_create_schedule_request_rejects_day_out_of_range() -> None:
    with pytest.raises(ValidationError):
        CreateScheduleRequest(dentist_id=7, day_of_week=7, start_time='09:00', end_time='17:00')


def test_create_dentist_schedule_rejects_inverted_hours(schedule_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_dentist_schedule(
            data=CreateScheduleRequest(dentist_id=7, day_of_week=1, start_time='17:00', end_time='09:00'),
            db=schedule_db,
        )

    assert exception_info.value.status_code == 400


def test_create_dentist_schedule_rejects_second_template_for_same_day(schedule_db) -> None:
    _monday_schedule(schedule_db)

    with pytest.raises(HTTPException) as exception_info:
        _monday_schedule(schedule_db)

    assert exception_info.value.status_code == 409


def test_list_dentist_schedules_returns_templates(schedule_db) -> None:
    _monday_schedule(schedule_db)

    schedules = list_dentist_schedules(dentist_id=7, db=schedule_db)

    assert [(schedule.day_of_week, schedule.start_time, schedule.end_time) for schedule in schedules] == [
        (1, '09:00', '17:00'),
    ]


def test_update_dentist_schedule_applies_partial_changes(schedule_db) -> None:
    schedule = _monday_schedule(schedule_db)

    updated = update_dentist_schedule(
        schedule_id=schedule.id,
        data=UpdateScheduleRequest(end_time='12:00'),
        db=schedule_db,
    )

    assert updated.start_time == '09:00'
    assert updated.end_time == '12:00'
    assert updated.is_available is True


def test_update_dentist_schedule_returns_not_found_when_missing(schedule_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_dentist_schedule(schedule_id=999, data=UpdateScheduleRequest(is_available=False), db=schedule_db)

    assert exception_info.value.status_code == 404


def test_list_available_slots_skips_booked_interval(schedule_db, service) -> None:
    _monday_schedule(schedule_db)
    schedule_db.add(
        Appointment(
            patient_id=3,
            dentist_id=7,
            clinic_id=1,
            start_time=datetime(2026, 1, 5, 10, 0),
            end_time=datetime(2026, 1, 5, 11, 0),
            status='scheduled',
        )
    )
    schedule_db.commit()

    slots = list_available_slots(dentist_id=7, date='2026-01-05', service=service)

    starts = [slot.start_time for slot in slots]
    assert len(starts) == 14
    assert datetime(2026, 1, 5, 10, 0) not in starts
    assert datetime(2026, 1, 5, 10, 30) not in starts
    assert slots[0].end_time == datetime(2026, 1, 5, 9, 30)


def test_list_available_slots_ignores_cancelled_and_other_days(schedule_db, service) -> None:
    _monday_schedule(schedule_db)
    schedule_db.add_all([
        Appointment(
            patient_id=3,
            dentist_id=7,
            clinic_id=1,
            start_time=datetime(2026, 1, 5, 10, 0),
            end_time=datetime(2026, 1, 5, 11, 0),
            status='cancelled',
        ),
        Appointment(
            patient_id=3,
            dentist_id=7,
            clinic_id=1,
            start_time=datetime(2026, 1, 12, 10, 0),
            end_time=datetime(2026, 1, 12, 11, 0),
            status='scheduled',
        ),
    ])
    schedule_db.commit()

    slots = list_available_slots(dentist_id=7, date='2026-01-05', service=service)

    assert len(slots) == 16


def test_list_available_slots_is_empty_when_dentist_is_off(schedule_db, service) -> None:
    _monday_schedule(schedule_db, is_available=False)

    assert list_available_slots(dentist_id=7, date='2026-01-05', service=service) == []


def test_list_available_slots_rejects_malformed_date(schedule_db, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(dentist_id=7, date='January fifth', service=service)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['error'] == 'InvalidInterval'


class _UnavailableSession:
    def __init__(self) -> None:
        self.rollbacks = 0

    def query(self, *entities):
        raise SQLAlchemyError('database is locked')

    def rollback(self) -> None:
        self.rollbacks += 1


def test_list_dentist_schedules_rolls_back_when_database_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduling.routes.availability_routes.ensure_database_ready', lambda: None)
    db = _UnavailableSession()

    with pytest.raises(HTTPException) as exception_info:
        list_dentist_schedules(dentist_id=7, db=db)

    assert exception_info.value.status_code == 503
    assert db.rollbacks == 1
