from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.routes.dependencies import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    get_scheduling_service,
    scheduling_http_error,
)
from clinic_scheduling.scheduling.errors import SchedulingError
from clinic_scheduling.scheduling.service import SchedulingService

router = APIRouter(tags=['appointments'])

MAX_APPOINTMENT_NOTES_LENGTH = 600


class CreateAppointmentRequest(BaseModel):
    patient_id: int
    dentist_id: int
    clinic_id: int
    start_time: datetime
    duration_minutes: int | None = None
    end_time: datetime | None = None
    notes: str | None = None
    is_emergency: bool = False
    status: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateAppointmentStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return value.strip().lower()


class RescheduleAppointmentRequest(BaseModel):
    start_time: datetime
    duration_minutes: int | None = None
    end_time: datetime | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    dentist_id: int
    clinic_id: int
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    is_emergency: bool = False

    class Config:
        from_attributes = True


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    clinic_id: int | None = Query(default=None),
    dentist_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if clinic_id is None and dentist_id is None and patient_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Filter by clinic_id, dentist_id or patient_id.',
        )

    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if clinic_id is not None:
            query = query.filter(Appointment.clinic_id == clinic_id)
        if dentist_id is not None:
            query = query.filter(Appointment.dentist_id == dentist_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)

        return query.order_by(Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    ensure_database_ready()

    try:
        return service.get_appointment(appointment_id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.create_appointment(
            patient_id=data.patient_id,
            dentist_id=data.dentist_id,
            clinic_id=data.clinic_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            end_time=data.end_time,
            notes=data.notes,
            is_emergency=data.is_emergency,
            status=data.status,
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateAppointmentStatusRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.transition_appointment_status(appointment_id, data.status)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{appointment_id}/time', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        return service.reschedule_appointment(
            appointment_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            end_time=data.end_time,
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
