from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.database import SessionLocal, ensure_appointment_schema, ensure_schedule_schema
from clinic_scheduling.scheduling.errors import (
    ConcurrentBookingConflict,
    InvalidInterval,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotUnavailable,
)
from clinic_scheduling.scheduling.locks import BookingLockTable
from clinic_scheduling.scheduling.service import SchedulingService
from clinic_scheduling.scheduling.store import SqlAlchemyScheduleStore

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

SCHEDULING_ERROR_STATUS_CODES = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidInterval: status.HTTP_400_BAD_REQUEST,
    InvalidStatus: status.HTTP_400_BAD_REQUEST,
    InvalidTransition: status.HTTP_409_CONFLICT,
    SlotUnavailable: status.HTTP_409_CONFLICT,
    ConcurrentBookingConflict: status.HTTP_409_CONFLICT,
}

# Shared by every request in this process so bookings for one dentist-day serialize.
booking_locks = BookingLockTable()


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped_status in SCHEDULING_ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = mapped_status
            break

    return HTTPException(
        status_code=status_code,
        detail={'error': type(exc).__name__, 'message': str(exc)},
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    return SchedulingService(SqlAlchemyScheduleStore(db), locks=booking_locks)
