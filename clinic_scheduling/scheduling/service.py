"""Slot computation and booking for dentist appointments.

Available slots are recomputed from the availability template and the day's
appointments on every query, so a booking or cancellation shows up on the next
call with nothing to invalidate. Writes that can change a dentist's day
(booking, rescheduling, status changes) run under that day's lock and repeat
the conflict check before committing.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterator

from clinic_scheduling.core import config
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.availability import DentistSchedule
from clinic_scheduling.scheduling.availability import day_of_week_for, template_window, to_clinic_date, to_clinic_local
from clinic_scheduling.scheduling.booking_status import (
    AppointmentStatus,
    ensure_initial_status,
    ensure_transition,
    is_terminal,
    parse_status,
)
from clinic_scheduling.scheduling.errors import (
    ConcurrentBookingConflict,
    InvalidInterval,
    InvalidTransition,
    NotFound,
    SlotUnavailable,
)
from clinic_scheduling.scheduling.locks import BookingLockTable
from clinic_scheduling.scheduling.slots import (
    SlotWindow,
    booked_intervals,
    conflicts_with,
    filter_available_slots,
    slot_length,
)
from clinic_scheduling.scheduling.store import ScheduleStore

logger = logging.getLogger(__name__)

MAX_LOCK_ATTEMPTS = 3


class SchedulingService:
    def __init__(
        self,
        store: ScheduleStore,
        locks: BookingLockTable | None = None,
        slot_duration_minutes: int | None = None,
        clinic_timezone: tzinfo | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.locks = locks or BookingLockTable()
        self.slot_duration = slot_length(slot_duration_minutes or config.SLOT_DURATION_MINUTES)
        self.clinic_timezone = clinic_timezone if clinic_timezone is not None else config.get_clinic_timezone()
        self.lock_timeout = config.BOOKING_LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    def get_availability_template(self, dentist_id: int, target_date: str | date | datetime) -> DentistSchedule | None:
        """Template for the date's weekday, or None when the dentist is not working that day."""
        return self._template_for_day(dentist_id, to_clinic_date(target_date, self.clinic_timezone))

    def _template_for_day(self, dentist_id: int, day: date) -> DentistSchedule | None:
        template = self.store.get_availability_template(dentist_id, day_of_week_for(day))
        if template is None or not template.is_available:
            return None
        return template

    def list_booked_appointments(self, dentist_id: int, target_date: str | date | datetime) -> list[Appointment]:
        day = to_clinic_date(target_date, self.clinic_timezone)
        return self.store.list_booked_appointments(dentist_id, day)

    def slot_window(self, dentist_id: int, day: date) -> SlotWindow | None:
        bounds = template_window(self._template_for_day(dentist_id, day), day)
        if bounds is None:
            return None
        return SlotWindow(start=bounds[0], end=bounds[1], duration=self.slot_duration)

    def compute_available_slots(self, dentist_id: int, target_date: str | date | datetime) -> list[datetime]:
        day = to_clinic_date(target_date, self.clinic_timezone)
        window = self.slot_window(dentist_id, day)
        if window is None:
            return []

        intervals = booked_intervals(self.store.list_booked_appointments(dentist_id, day))
        return list(filter_available_slots(window, intervals, self.slot_duration))

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFound(f'Appointment {appointment_id} not found.')
        return appointment

    def create_appointment(
        self,
        patient_id: int,
        dentist_id: int,
        clinic_id: int,
        start_time: datetime,
        duration_minutes: int | None = None,
        end_time: datetime | None = None,
        notes: str | None = None,
        is_emergency: bool = False,
        status: str | None = None,
    ) -> Appointment:
        initial_status = ensure_initial_status(status)
        start, end = self._resolve_interval(start_time, duration_minutes, end_time)

        if self.store.get_dentist(dentist_id) is None:
            raise NotFound(f'Dentist {dentist_id} not found.')

        day = start.date()
        with self.locks.hold((dentist_id, day), timeout=self.lock_timeout):
            self._ensure_bookable(dentist_id, start, end)

            appointment = Appointment(
                patient_id=patient_id,
                dentist_id=dentist_id,
                clinic_id=clinic_id,
                start_time=start,
                end_time=end,
                status=initial_status.value,
                notes=notes,
                is_emergency=is_emergency,
            )
            appointment = self.store.add_appointment(appointment)

        logger.info(
            'Booked appointment %s for dentist %s at %s', appointment.id, dentist_id, start.isoformat()
        )
        return appointment

    def reschedule_appointment(
        self,
        appointment_id: int,
        start_time: datetime,
        duration_minutes: int | None = None,
        end_time: datetime | None = None,
    ) -> Appointment:
        """Move an appointment's time bounds.

        Without ``duration_minutes`` or ``end_time`` the appointment keeps its
        current length.
        """
        keep_length = duration_minutes is None and end_time is None
        if keep_length:
            start, end = self._clinic_start(start_time), None
        else:
            start, end = self._resolve_interval(start_time, duration_minutes, end_time)

        with self._locked_appointment(appointment_id, target_day=start.date()) as appointment:
            status = parse_status(appointment.status)
            if is_terminal(status):
                raise InvalidTransition(f'Appointment is {status.value} and can no longer be rescheduled.')

            if keep_length:
                end = start + (appointment.end_time - appointment.start_time)

            self._ensure_bookable(appointment.dentist_id, start, end, exclude_id=appointment.id)
            appointment.start_time = start
            appointment.end_time = end
            appointment = self.store.save_appointment(appointment)

        logger.info('Rescheduled appointment %s to %s', appointment.id, start.isoformat())
        return appointment

    def transition_appointment_status(self, appointment_id: int, new_status: str | AppointmentStatus) -> Appointment:
        target = parse_status(new_status)

        with self._locked_appointment(appointment_id) as appointment:
            previous = appointment.status
            appointment.status = ensure_transition(previous, target).value
            appointment = self.store.save_appointment(appointment)

        logger.info('Appointment %s moved from %s to %s', appointment.id, previous, appointment.status)
        return appointment

    @contextmanager
    def _locked_appointment(self, appointment_id: int, target_day: date | None = None) -> Iterator[Appointment]:
        """Hold the appointment's day lock and yield the row as committed.

        The day comes from a read taken before locking, so it is checked again
        on the reloaded row; if a reschedule moved the appointment meanwhile
        the lock is released and taken for the new day.
        """
        appointment = self.get_appointment(appointment_id)
        for _ in range(MAX_LOCK_ATTEMPTS):
            day = appointment.start_time.date()
            keys = [(appointment.dentist_id, day)]
            if target_day is not None:
                keys.append((appointment.dentist_id, target_day))

            with self.locks.hold(*keys, timeout=self.lock_timeout):
                appointment = self.store.get_appointment(appointment_id, fresh=True)
                if appointment is None:
                    raise NotFound(f'Appointment {appointment_id} not found.')
                if appointment.start_time.date() == day:
                    yield appointment
                    return

        raise ConcurrentBookingConflict(f'Appointment {appointment_id} kept moving while waiting for its day lock.')

    def _clinic_start(self, start_time: datetime) -> datetime:
        if not isinstance(start_time, datetime):
            raise InvalidInterval('Appointment start time must be a date and time.')
        return to_clinic_local(start_time, self.clinic_timezone).replace(second=0, microsecond=0)

    def _resolve_interval(
        self,
        start_time: datetime,
        duration_minutes: int | None,
        end_time: datetime | None,
    ) -> tuple[datetime, datetime]:
        if duration_minutes is not None and duration_minutes <= 0:
            raise InvalidInterval('Appointment duration must be a positive number of minutes.')

        start = self._clinic_start(start_time)

        if end_time is not None:
            if not isinstance(end_time, datetime):
                raise InvalidInterval('Appointment end time must be a date and time.')
            end = to_clinic_local(end_time, self.clinic_timezone).replace(second=0, microsecond=0)
            if duration_minutes is not None and end - start != timedelta(minutes=duration_minutes):
                raise InvalidInterval('Appointment end time does not match the requested duration.')
        elif duration_minutes is None:
            end = start + self.slot_duration
        else:
            end = start + slot_length(duration_minutes)

        if end <= start:
            raise InvalidInterval('Appointment end time must be after its start time.')

        return start, end

    def _ensure_bookable(self, dentist_id: int, start: datetime, end: datetime, exclude_id: int | None = None) -> None:
        day = start.date()
        window = self.slot_window(dentist_id, day)
        if window is None or not window.contains(start, end):
            logger.warning('Refused booking for dentist %s at %s: outside open hours', dentist_id, start.isoformat())
            raise SlotUnavailable('Appointment is outside the dentist\'s scheduling hours.')

        intervals = booked_intervals(self.store.list_booked_appointments(dentist_id, day), exclude_id=exclude_id)
        if conflicts_with(start, end, intervals):
            logger.warning('Refused booking for dentist %s at %s: already booked', dentist_id, start.isoformat())
            raise SlotUnavailable('This time is already booked.')
