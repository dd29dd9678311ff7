"""Monthly batch that refreshes the bills of every enrolled student."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .bill_generation import BillGenerationService, utcnow
from .occurrences import ClassSchedule, count_occurrences, parse_month_year

LOGGER = logging.getLogger(__name__)


@dataclass
class BillRunSummary:
    """Outcome of one monthly batch run."""

    month_year: str
    total_students: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0

    def record_error(self, student_id: str, message: str) -> None:
        self.error_count += 1
        self.errors.append({"student_id": str(student_id), "error": message})

    def to_dict(self) -> dict[str, object]:
        return {
            "month_year": self.month_year,
            "total_students": self.total_students,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "duration_seconds": round(self.duration_seconds, 3),
        }


class BillBatchService:
    """Generate or refresh every student's bill for a month."""

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.generator = BillGenerationService(db, clock=clock)

    def collect_students(self, month_year: str) -> dict[str, list[str]]:
        """Map each enrolled student to the billable classes occurring in the month."""

        students: dict[str, list[str]] = {}
        for tutoring_class in self.generator.classes.list_scheduled_classes():
            if tutoring_class.is_demo:
                continue
            if count_occurrences(ClassSchedule.from_class(tutoring_class), month_year) == 0:
                continue
            for student_id in tutoring_class.student_ids:
                students.setdefault(student_id, []).append(tutoring_class.id)
        return students

    def auto_generate_bills_for_month(self, month_year: str) -> BillRunSummary:
        parse_month_year(month_year)
        started = time.monotonic()
        summary = BillRunSummary(month_year=month_year)
        LOGGER.info("Starting bill generation for %s", month_year)

        students = self.collect_students(month_year)
        summary.total_students = len(students)

        parent_index: Optional[dict[str, str]] = None
        for student_id, class_ids in students.items():
            try:
                student = self.generator.users.get_user(student_id)
                if student is None:
                    LOGGER.warning("Student %s enrolled in %s no longer exists", student_id, class_ids)
                    summary.record_error(student_id, "Student not found")
                    continue
                if parent_index is None:
                    parent_index = self.generator.users.build_parent_index()
                parent_id = self.generator.users.resolve_parent_id(
                    student, parent_index=parent_index
                )
                if not parent_id:
                    LOGGER.warning("No parent found for student %s; skipping", student_id)
                    summary.record_error(student_id, "No parent linked to student")
                    continue

                self.generator.generate_or_update_bill(student_id, parent_id, month_year)
                summary.success_count += 1
            except Exception as exc:
                self.db.rollback()
                LOGGER.exception("Failed to generate %s bill for student %s", month_year, student_id)
                summary.record_error(student_id, str(exc))

        summary.duration_seconds = time.monotonic() - started
        LOGGER.info(
            "Bill generation for %s finished: %d ok, %d failed of %d students in %.2fs",
            month_year,
            summary.success_count,
            summary.error_count,
            summary.total_students,
            summary.duration_seconds,
        )
        return summary


def auto_generate_bills_for_month(db: Session, month_year: str) -> BillRunSummary:
    return BillBatchService(db).auto_generate_bills_for_month(month_year)


__all__ = [
    "BillBatchService",
    "BillRunSummary",
    "auto_generate_bills_for_month",
]
