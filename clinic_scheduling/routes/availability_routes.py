from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.models.availability import DentistSchedule
from clinic_scheduling.routes.dependencies import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    get_scheduling_service,
    scheduling_http_error,
)
from clinic_scheduling.scheduling.availability import validate_template_times
from clinic_scheduling.scheduling.errors import InvalidInterval, SchedulingError
from clinic_scheduling.scheduling.service import SchedulingService

router = APIRouter(tags=['availability'])


def _validate_day_of_week(value: int | None) -> int | None:
    if value is not None and not 0 <= value <= 6:
        raise ValueError('Day of week must be between 0 (Sunday) and 6 (Saturday).')
    return value


class CreateScheduleRequest(BaseModel):
    dentist_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        return _validate_day_of_week(value)


class UpdateScheduleRequest(BaseModel):
    day_of_week: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    is_available: bool | None = None

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int | None) -> int | None:
        return _validate_day_of_week(value)


class ScheduleResponse(BaseModel):
    id: int
    dentist_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True


class AvailableSlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime


@router.get('/slots', response_model=list[AvailableSlotResponse])
def list_available_slots(
    dentist_id: int = Query(...),
    date: str = Query(...),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        slots = service.compute_available_slots(dentist_id, date)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        AvailableSlotResponse(start_time=slot_start, end_time=slot_start + service.slot_duration)
        for slot_start in slots
    ]


@router.get('/schedules/{dentist_id}', response_model=list[ScheduleResponse])
def list_dentist_schedules(dentist_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(DentistSchedule).filter(
            DentistSchedule.dentist_id == dentist_id,
        ).order_by(DentistSchedule.day_of_week.asc(), DentistSchedule.id.asc()).all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/schedules', response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_dentist_schedule(data: CreateScheduleRequest, db: Session = Depends(get_db)):
    try:
        start_time, end_time = validate_template_times(data.start_time, data.end_time)
    except InvalidInterval as exc:
        raise scheduling_http_error(exc) from exc

    ensure_database_ready()

    try:
        existing = db.query(DentistSchedule).filter(
            DentistSchedule.dentist_id == data.dentist_id,
            DentistSchedule.day_of_week == data.day_of_week,
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This dentist already has a schedule for that day.',
            )

        schedule = DentistSchedule(
            dentist_id=data.dentist_id,
            day_of_week=data.day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_available=data.is_available,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)

        return schedule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/schedules/{schedule_id}', response_model=ScheduleResponse)
def update_dentist_schedule(schedule_id: int, data: UpdateScheduleRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        schedule = db.query(DentistSchedule).filter(DentistSchedule.id == schedule_id).first()
        if not schedule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Schedule not found.',
            )

        try:
            start_time, end_time = validate_template_times(
                data.start_time if data.start_time is not None else schedule.start_time,
                data.end_time if data.end_time is not None else schedule.end_time,
            )
        except InvalidInterval as exc:
            raise scheduling_http_error(exc) from exc

        if data.day_of_week is not None and data.day_of_week != schedule.day_of_week:
            clash = db.query(DentistSchedule).filter(
                DentistSchedule.dentist_id == schedule.dentist_id,
                DentistSchedule.day_of_week == data.day_of_week,
                DentistSchedule.id != schedule.id,
            ).first()
            if clash:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='This dentist already has a schedule for that day.',
                )
            schedule.day_of_week = data.day_of_week

        schedule.start_time = start_time
        schedule.end_time = end_time
        if data.is_available is not None:
            schedule.is_available = data.is_available

        db.commit()
        db.refresh(schedule)

        return schedule
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
