"""Specialist model definitions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Time
from marketplace.database import Base


class Specialist(Base):
    """Represents a specialist and their daily working window."""
    __tablename__ = "specialists"
    __table_args__ = (
        CheckConstraint("opening_time < closing_time", name="ck_specialists_working_window"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String)
    speciality = Column(String)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    opening_time = Column(Time, nullable=False)
    closing_time = Column(Time, nullable=False)
