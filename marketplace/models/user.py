"""User model definitions."""

from sqlalchemy import Column, Integer, String
from marketplace.database import Base


class User(Base):
    """Represents an authenticated marketplace account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # customer/specialist
