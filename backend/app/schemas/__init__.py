"""Expose Pydantic schemas for convenient imports."""

from .billing import (
    BillNoteCreate,
    BillRunSummaryRead,
    BillStatusUpdate,
    BillSummaryRead,
    ClassBillListResponse,
    ClassBillRead,
    ClassDeletionRequest,
    ClassDeletionResponse,
    MonthGenerationRequest,
    ParentBillsResponse,
    StudentBillRequest,
)
from .common import PaginatedResponse
from .profiles import ParentProfile, StudentProfile
from .scheduler import JobHealth, SchedulerHealthResponse
from .tutoring_class import ClassBase, ClassCreate, ClassRead

__all__ = [
    "BillNoteCreate",
    "BillRunSummaryRead",
    "BillStatusUpdate",
    "BillSummaryRead",
    "ClassBillListResponse",
    "ClassBillRead",
    "ClassDeletionRequest",
    "ClassDeletionResponse",
    "MonthGenerationRequest",
    "ParentBillsResponse",
    "StudentBillRequest",
    "PaginatedResponse",
    "ParentProfile",
    "StudentProfile",
    "JobHealth",
    "SchedulerHealthResponse",
    "ClassBase",
    "ClassCreate",
    "ClassRead",
]
