"""Availability template model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from clinic_scheduling.database import Base


class DentistSchedule(Base):
    """Weekly open hours for one dentist on one day of the week."""
    __tablename__ = "dentist_schedules"

    id = Column(Integer, primary_key=True)
    dentist_id = Column(Integer, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0-6, Sunday=0
    start_time = Column(String, nullable=False)  # "HH:MM"
    end_time = Column(String, nullable=False)  # "HH:MM"
    is_available = Column(Boolean, nullable=False, default=True)
