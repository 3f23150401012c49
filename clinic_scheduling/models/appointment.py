"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from clinic_scheduling.database import Base


class Appointment(Base):
    """Represents a booked appointment with a dentist."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, nullable=False)
    dentist_id = Column(Integer, nullable=False, index=True)
    clinic_id = Column(Integer, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    notes = Column(String)
    is_emergency = Column(Boolean, default=False)
