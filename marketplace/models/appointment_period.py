"""Booked interval index definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from marketplace.database import Base


class AppointmentPeriod(Base):
    """Interval occupied by an accepted appointment, queried for overlaps."""
    __tablename__ = "appointment_periods"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, unique=True)
    specialist_id = Column(Integer, ForeignKey("specialists.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
