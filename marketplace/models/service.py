"""Service model definitions."""

from sqlalchemy import CheckConstraint, Column, Float, Integer, String
from marketplace.database import Base


class Service(Base):
    """Represents a bookable speciality and how long one appointment lasts."""
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("duration_hours > 0", name="ck_services_duration_positive"),
    )

    id = Column(Integer, primary_key=True)
    speciality = Column(String, nullable=False, unique=True)
    duration_hours = Column(Float, nullable=False)
