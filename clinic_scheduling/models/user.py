"""User model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_scheduling.database import Base


class User(Base):
    """Represents a clinic user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # admin/dentist/staff/patient
    clinic_id = Column(Integer)
