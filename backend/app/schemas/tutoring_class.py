from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.tutoring_class import (
    WEEKDAY_NAMES,
    ClassPaymentStatus,
    ClassStatus,
    ScheduleType,
)


class ClassBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    subject: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    tutor_id: Optional[str] = None
    schedule_type: ScheduleType = ScheduleType.ONE_TIME
    class_date: Optional[date] = Field(default=None, description="Date of a one-time class")
    start_date: Optional[date] = Field(default=None, description="First day of a recurring class")
    end_date: Optional[date] = Field(default=None, description="Last day of a recurring class")
    recurring_days: list[str] = Field(default_factory=list, description="Lowercase weekday names")
    start_time: str = Field(default="00:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    duration_minutes: int = Field(default=35, gt=0, le=24 * 60)
    payment_status: ClassPaymentStatus = ClassPaymentStatus.UNPAID
    amount: Decimal = Field(..., ge=0, description="Price of a single occurrence")
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("title cannot be blank")
        return stripped

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("recurring_days", mode="before")
    @classmethod
    def _normalize_days(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(day).strip().lower() for day in value if str(day).strip()]


class ClassCreate(ClassBase):
    """Schema used to schedule a class and enroll students."""

    student_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_schedule(self) -> "ClassCreate":
        if self.schedule_type == ScheduleType.ONE_TIME:
            if self.class_date is None:
                raise ValueError("class_date is required for one-time classes")
            return self

        if self.start_date is None or self.end_date is None:
            raise ValueError("start_date and end_date are required for recurring classes")
        if self.start_date > self.end_date:
            raise ValueError("start_date cannot be after end_date")
        if not self.recurring_days:
            raise ValueError("recurring_days cannot be empty for recurring classes")
        unknown = sorted(set(self.recurring_days) - set(WEEKDAY_NAMES))
        if unknown:
            raise ValueError(f"Unknown weekdays: {', '.join(unknown)}")
        return self


class ClassRead(ClassBase):
    id: str
    status: ClassStatus
    recurring_days: Optional[list[str]] = None
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
