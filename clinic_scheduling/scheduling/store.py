"""Storage seams used by the scheduling core.

The core only reads availability templates and reads/creates appointments, so
it talks to a small store interface instead of a concrete session. The
SQLAlchemy store backs the HTTP service; the in-memory store keeps everything
in dictionaries and is handy for tests and embedding.
"""

from datetime import date, datetime, time, timedelta
from itertools import count
from threading import Lock
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.availability import DentistSchedule
from clinic_scheduling.models.user import User


DENTIST_ROLE = 'dentist'


def _day_bounds(target_date: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(target_date, time.min)
    return day_start, day_start + timedelta(days=1)


class ScheduleStore(Protocol):
    def get_dentist(self, dentist_id: int) -> User | None: ...

    def get_availability_template(self, dentist_id: int, day_of_week: int) -> DentistSchedule | None: ...

    def list_booked_appointments(self, dentist_id: int, target_date: date) -> list[Appointment]: ...

    def get_appointment(self, appointment_id: int, fresh: bool = False) -> Appointment | None: ...

    def add_appointment(self, appointment: Appointment) -> Appointment: ...

    def save_appointment(self, appointment: Appointment) -> Appointment: ...


class SqlAlchemyScheduleStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_dentist(self, dentist_id: int) -> User | None:
        return self.db.query(User).filter(
            User.id == dentist_id,
            User.role == DENTIST_ROLE,
        ).first()

    def get_availability_template(self, dentist_id: int, day_of_week: int) -> DentistSchedule | None:
        return self.db.query(DentistSchedule).filter(
            DentistSchedule.dentist_id == dentist_id,
            DentistSchedule.day_of_week == day_of_week,
        ).order_by(DentistSchedule.id.asc()).first()

    def list_booked_appointments(self, dentist_id: int, target_date: date) -> list[Appointment]:
        day_start, next_day = _day_bounds(target_date)
        return self.db.query(Appointment).filter(
            Appointment.dentist_id == dentist_id,
            Appointment.start_time >= day_start,
            Appointment.start_time < next_day,
        ).order_by(Appointment.start_time.asc()).populate_existing().all()

    def get_appointment(self, appointment_id: int, fresh: bool = False) -> Appointment | None:
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if fresh:
            # Replace any copy cached in this session with the committed row.
            query = query.populate_existing().with_for_update()
        return query.first()

    def add_appointment(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        return self._commit(appointment)

    def save_appointment(self, appointment: Appointment) -> Appointment:
        return self._commit(appointment)

    def _commit(self, appointment: Appointment) -> Appointment:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(appointment)
        return appointment


class InMemoryScheduleStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._ids = {'appointments': count(1), 'schedules': count(1)}
        self.dentists: dict[int, User] = {}
        self.schedules: dict[int, DentistSchedule] = {}
        self.appointments: dict[int, Appointment] = {}

    def add_dentist(self, dentist: User) -> User:
        dentist.role = dentist.role or DENTIST_ROLE
        self.dentists[dentist.id] = dentist
        return dentist

    def add_schedule(self, schedule: DentistSchedule) -> DentistSchedule:
        with self._lock:
            schedule.id = next(self._ids['schedules'])
            self.schedules[schedule.id] = schedule
        return schedule

    def get_dentist(self, dentist_id: int) -> User | None:
        dentist = self.dentists.get(dentist_id)
        if dentist is None or dentist.role != DENTIST_ROLE:
            return None
        return dentist

    def get_availability_template(self, dentist_id: int, day_of_week: int) -> DentistSchedule | None:
        matches = [
            schedule for schedule in self.schedules.values()
            if schedule.dentist_id == dentist_id and schedule.day_of_week == day_of_week
        ]
        return min(matches, key=lambda schedule: schedule.id, default=None)

    def list_booked_appointments(self, dentist_id: int, target_date: date) -> list[Appointment]:
        day_start, next_day = _day_bounds(target_date)
        with self._lock:
            appointments = list(self.appointments.values())
        return sorted(
            (
                appointment for appointment in appointments
                if appointment.dentist_id == dentist_id and day_start <= appointment.start_time < next_day
            ),
            key=lambda appointment: appointment.start_time,
        )

    def get_appointment(self, appointment_id: int, fresh: bool = False) -> Appointment | None:
        return self.appointments.get(appointment_id)

    def add_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            appointment.id = next(self._ids['appointments'])
            self.appointments[appointment.id] = appointment
        return appointment

    def save_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            self.appointments[appointment.id] = appointment
        return appointment
