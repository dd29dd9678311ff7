"""SQLAlchemy models for scheduled tutoring classes and their enrollments."""

from __future__ import annotations

import enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_identifier

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class ScheduleType(str, enum.Enum):
    """How a class repeats over the calendar."""

    ONE_TIME = "one-time"
    WEEKLY_RECURRING = "weekly-recurring"


class ClassStatus(str, enum.Enum):
    """Lifecycle state of a class."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ClassPaymentStatus(str, enum.Enum):
    """Billing treatment of a class; demo classes are never billed."""

    UNPAID = "unpaid"
    PAID = "paid"
    DEMO = "democlass"


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        validate_strings=True,
    )


class_enrollments = Table(
    "class_enrollments",
    Base.metadata,
    Column(
        "class_id",
        GUID(),
        ForeignKey("classes.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "student_id",
        GUID(),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class TutoringClass(Base):
    """A class offered by the center, either once or on a weekly pattern."""

    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_classes_amount_non_negative"),
        CheckConstraint("duration_minutes > 0", name="ck_classes_duration_positive"),
    )

    id = Column(GUID(), primary_key=True, default=new_identifier)
    title = Column(String(200), nullable=False)
    subject = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    tutor_id = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    schedule_type = Column(
        _enum_column(ScheduleType, "class_schedule_type_enum"),
        nullable=False,
        default=ScheduleType.ONE_TIME,
    )
    class_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    recurring_days = Column(JSON, nullable=True)
    start_time = Column(String(5), nullable=False, default="00:00")
    duration_minutes = Column(Integer, nullable=False, default=35)
    status = Column(
        _enum_column(ClassStatus, "class_status_enum"),
        nullable=False,
        default=ClassStatus.SCHEDULED,
    )
    payment_status = Column(
        _enum_column(ClassPaymentStatus, "class_payment_status_enum"),
        nullable=False,
        default=ClassPaymentStatus.UNPAID,
    )
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    students = relationship("User", secondary=class_enrollments, lazy="selectin")

    @property
    def student_ids(self) -> list[str]:
        return [student.id for student in self.students]

    @property
    def is_demo(self) -> bool:
        return self.payment_status == ClassPaymentStatus.DEMO


Index("classes_status_idx", TutoringClass.status)
Index("class_enrollments_student_idx", class_enrollments.c.student_id)
