from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.class_billing import BillStatus
from .common import PaginatedResponse

# ``YYYY-MM`` values are validated by the billing services so that a malformed
# month surfaces as a 400 rather than a schema error.
MONTH_YEAR_DESCRIPTION = "Billing month formatted as YYYY-MM"


class ClassBillRead(BaseModel):
    """Monthly bill as returned to parents and administrators."""

    id: str
    student_id: str
    parent_id: str
    month_year: str
    total_classes_count: int
    amount: Decimal
    currency: str
    status: BillStatus
    billing_generated_date: datetime
    due_date: Optional[date] = None
    notes: Optional[str] = None
    class_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillSummaryRead(BaseModel):
    count: int = 0
    total_amount: Decimal = Decimal("0.00")
    paid_amount: Decimal = Decimal("0.00")
    unpaid_amount: Decimal = Decimal("0.00")
    by_status: dict[str, int] = Field(default_factory=dict)
    currencies: list[str] = Field(default_factory=list)
    base_currency: Optional[str] = None
    total_in_base_currency: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class ClassBillListResponse(PaginatedResponse[ClassBillRead]):
    summary: BillSummaryRead


class ParentBillsResponse(BaseModel):
    parent_id: str
    month_year: Optional[str] = None
    bills: list[ClassBillRead]
    summary: BillSummaryRead


class BillStatusUpdate(BaseModel):
    note: Optional[str] = Field(default=None, max_length=1000)


class BillNoteCreate(BaseModel):
    note: str = Field(..., min_length=1, max_length=1000)

    @field_validator("note")
    @classmethod
    def _strip_note(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("note cannot be blank")
        return stripped


class MonthGenerationRequest(BaseModel):
    month_year: str = Field(..., description=MONTH_YEAR_DESCRIPTION)


class StudentBillRequest(BaseModel):
    parent_id: str = Field(..., min_length=1)
    month_year: str = Field(..., description=MONTH_YEAR_DESCRIPTION)


class ClassDeletionRequest(BaseModel):
    class_id: str = Field(..., min_length=1)


class BillRunError(BaseModel):
    student_id: str
    error: str


class BillRunSummaryRead(BaseModel):
    month_year: str
    total_students: int
    success_count: int
    error_count: int
    errors: list[BillRunError] = Field(default_factory=list)
    duration_seconds: float

    model_config = ConfigDict(from_attributes=True)


class ClassDeletionResponse(BaseModel):
    class_id: str
    updated_bills: list[ClassBillRead]
