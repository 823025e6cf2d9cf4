"""User model definitions."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from hilearn.database import Base, utc_now


class Role(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


STAFF_ROLES = (Role.ADMIN.value, Role.INSTRUCTOR.value)


class User(Base):
    """Represents a learner or staff member."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.STUDENT.value)
    division_id = Column(Integer, nullable=True)
    avatar = Column(String, nullable=True)
    is_support_agent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
