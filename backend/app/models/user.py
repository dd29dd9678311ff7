"""SQLAlchemy model for center users (students, parents, tutors, admins)."""

from __future__ import annotations

import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, func

from ..database import Base
from ..db_types import GUID, new_identifier


class UserRole(str, enum.Enum):
    """Roles a user can hold inside a tutoring center."""

    STUDENT = "student"
    PARENT = "parent"
    TUTOR = "tutor"
    ADMIN = "admin"


class User(Base):
    """Represents a person registered in the center.

    ``student_profile`` and ``parent_profile`` are loosely structured blobs kept
    for compatibility with older records; use
    :mod:`backend.app.schemas.profiles` to read them.
    """

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=new_identifier)
    role = Column(
        Enum(
            UserRole,
            name="user_role_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True, unique=True)
    student_profile = Column(JSON, nullable=True)
    parent_profile = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


Index("users_role_idx", User.role)
