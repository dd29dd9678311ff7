"""Business logic for scheduling and removing tutoring classes."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from .. import models, schemas
from .bill_generation import BillGenerationService
from .billing_errors import InvalidInputError, NotFoundError
from .repositories import storage_errors

LOGGER = logging.getLogger(__name__)


class ClassService:
    """Create and delete classes while keeping bills consistent."""

    def __init__(self, db: Session, *, billing: Optional[BillGenerationService] = None) -> None:
        self.db = db
        self.billing = billing or BillGenerationService(db)

    def get_class(self, class_id: str) -> models.TutoringClass:
        tutoring_class = self.billing.classes.get_class(class_id)
        if tutoring_class is None:
            raise NotFoundError(f"Class {class_id} not found")
        return tutoring_class

    def _load_students(self, student_ids: list[str]) -> list[models.User]:
        students = []
        for student_id in dict.fromkeys(student_ids):
            student = self.billing.users.get_user(student_id)
            if student is None or student.role != models.UserRole.STUDENT:
                raise InvalidInputError(f"Student {student_id} not found")
            students.append(student)
        return students

    def create_class(
        self, data: schemas.ClassCreate, *, today: Optional[date] = None
    ) -> models.TutoringClass:
        """Persist the class with its enrollments, then bill it right away.

        Billing problems are logged; the class itself stays scheduled.
        """

        students = self._load_students(data.student_ids)
        tutoring_class = models.TutoringClass(**data.model_dump(exclude={"student_ids"}))
        tutoring_class.students = students
        with storage_errors(self.db, "create class"):
            self.db.add(tutoring_class)
            self.db.commit()
            self.db.refresh(tutoring_class)
        LOGGER.info("Class %s created with %d students", tutoring_class.id, len(students))

        try:
            self.billing.generate_immediate_billing_for_class(tutoring_class, today=today)
        except Exception:
            self.db.rollback()
            LOGGER.exception("Immediate billing failed for class %s", tutoring_class.id)
        return tutoring_class

    def delete_class(self, class_id: str) -> list[models.ClassBill]:
        """Delete the class, then reconcile the bills that still reference it."""

        tutoring_class = self.get_class(class_id)
        class_id = tutoring_class.id
        with storage_errors(self.db, "delete class"):
            self.db.delete(tutoring_class)
            self.db.commit()
        updated = self.billing.handle_class_deletion(class_id)
        LOGGER.info("Class %s deleted; %d bills reconciled", class_id, len(updated))
        return updated
