"""Expose SQLAlchemy models for convenient imports."""

from .class_billing import BillStatus, ClassBill, ClassBillItem
from .tutoring_class import (
    ClassPaymentStatus,
    ClassStatus,
    ScheduleType,
    TutoringClass,
    WEEKDAY_NAMES,
    class_enrollments,
)
from .user import User, UserRole

__all__ = [
    "BillStatus",
    "ClassBill",
    "ClassBillItem",
    "ClassPaymentStatus",
    "ClassStatus",
    "ScheduleType",
    "TutoringClass",
    "WEEKDAY_NAMES",
    "class_enrollments",
    "User",
    "UserRole",
]
