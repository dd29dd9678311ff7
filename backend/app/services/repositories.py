"""Persistence access used by the billing services."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..schemas.profiles import ParentProfile, StudentProfile
from .billing_errors import PersistenceError

LOGGER = logging.getLogger(__name__)


@contextmanager
def storage_errors(db: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise storage failures as ``PersistenceError``."""

    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Could not {action}: {exc}") from exc


class BillRepository:
    """Create, find and update ``ClassBill`` rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, bill_id: str) -> Optional[models.ClassBill]:
        with storage_errors(self.db, "load bill"):
            return self.db.get(models.ClassBill, str(bill_id))

    def find_by_key(
        self, student_id: str, parent_id: str, month_year: str
    ) -> Optional[models.ClassBill]:
        with storage_errors(self.db, "look up bill"):
            return (
                self.db.query(models.ClassBill)
                .filter(models.ClassBill.student_id == str(student_id))
                .filter(models.ClassBill.parent_id == str(parent_id))
                .filter(models.ClassBill.month_year == month_year)
                .first()
            )

    def create(self, **fields: Any) -> models.ClassBill:
        bill = models.ClassBill(**fields)
        with storage_errors(self.db, "create bill"):
            self.db.add(bill)
            self.db.flush()
        return bill

    def save(self, bill: models.ClassBill) -> models.ClassBill:
        with storage_errors(self.db, "update bill"):
            self.db.add(bill)
            self.db.flush()
        return bill

    def commit(self) -> None:
        with storage_errors(self.db, "commit billing changes"):
            self.db.commit()

    def list_by_parent(
        self, parent_id: str, month_year: Optional[str] = None
    ) -> list[models.ClassBill]:
        query = self.db.query(models.ClassBill).filter(
            models.ClassBill.parent_id == str(parent_id)
        )
        if month_year:
            query = query.filter(models.ClassBill.month_year == month_year)
        with storage_errors(self.db, "list parent bills"):
            return query.order_by(
                models.ClassBill.month_year.desc(), models.ClassBill.created_at.desc()
            ).all()

    def list_bills(
        self,
        *,
        statuses: Optional[Sequence[models.BillStatus]] = None,
        month_year: Optional[str] = None,
        parent_id: Optional[str] = None,
        student_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[list[models.ClassBill], int]:
        query = self.db.query(models.ClassBill)
        if statuses:
            query = query.filter(models.ClassBill.status.in_(list(statuses)))
        if month_year:
            query = query.filter(models.ClassBill.month_year == month_year)
        if parent_id:
            query = query.filter(models.ClassBill.parent_id == str(parent_id))
        if student_id:
            query = query.filter(models.ClassBill.student_id == str(student_id))

        with storage_errors(self.db, "list bills"):
            total = query.count()
            items = (
                query.order_by(
                    models.ClassBill.billing_generated_date.desc(),
                    models.ClassBill.month_year.desc(),
                )
                .offset(max(skip, 0))
                .limit(max(limit, 1))
                .all()
            )
        return items, total

    def find_containing_class(self, class_id: str) -> list[models.ClassBill]:
        with storage_errors(self.db, "find bills for class"):
            return (
                self.db.query(models.ClassBill)
                .join(models.ClassBillItem, models.ClassBillItem.bill_id == models.ClassBill.id)
                .filter(models.ClassBillItem.class_id == str(class_id))
                .order_by(models.ClassBill.month_year.asc())
                .all()
            )


class ClassCatalog:
    """Read access to tutoring classes."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_class(self, class_id: str) -> Optional[models.TutoringClass]:
        return self.db.get(models.TutoringClass, str(class_id))

    def list_scheduled_classes(self) -> list[models.TutoringClass]:
        return (
            self.db.query(models.TutoringClass)
            .filter(models.TutoringClass.status == models.ClassStatus.SCHEDULED)
            .order_by(models.TutoringClass.created_at.asc(), models.TutoringClass.id.asc())
            .all()
        )

    def list_billable_classes_for_student(
        self, student_id: str, *, exclude_ids: Iterable[str] = ()
    ) -> list[models.TutoringClass]:
        """Return scheduled, non-demo classes the student is enrolled in."""

        query = (
            self.db.query(models.TutoringClass)
            .join(
                models.class_enrollments,
                models.class_enrollments.c.class_id == models.TutoringClass.id,
            )
            .filter(models.class_enrollments.c.student_id == str(student_id))
            .filter(models.TutoringClass.status == models.ClassStatus.SCHEDULED)
            .filter(models.TutoringClass.payment_status != models.ClassPaymentStatus.DEMO)
        )
        excluded = [str(class_id) for class_id in exclude_ids]
        if excluded:
            query = query.filter(models.TutoringClass.id.notin_(excluded))
        with storage_errors(self.db, "load student classes"):
            return query.order_by(
                models.TutoringClass.created_at.asc(), models.TutoringClass.id.asc()
            ).all()


class UserDirectory:
    """Read access to students and parents, including parent resolution."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_user(self, user_id: str) -> Optional[models.User]:
        return self.db.get(models.User, str(user_id))

    def list_parents(self) -> list[models.User]:
        return (
            self.db.query(models.User)
            .filter(models.User.role == models.UserRole.PARENT)
            .order_by(models.User.created_at.asc(), models.User.id.asc())
            .all()
        )

    def build_parent_index(self) -> dict[str, str]:
        """Map each child id to the first parent listing it."""

        index: dict[str, str] = {}
        for parent in self.list_parents():
            for child_id in ParentProfile.parse(parent.parent_profile).child_ids:
                index.setdefault(child_id, parent.id)
        return index

    def resolve_parent_id(
        self, student: models.User, *, parent_index: Optional[dict[str, str]] = None
    ) -> Optional[str]:
        """Return the parent billed for ``student``.

        The student's own profile wins; otherwise the parents' child lists are
        consulted through ``parent_index`` (built on demand when omitted).
        """

        profile = StudentProfile.parse(student.student_profile)
        if profile.parent_id:
            return profile.parent_id

        if parent_index is None:
            LOGGER.debug("No parent on profile of student %s; scanning parents", student.id)
            parent_index = self.build_parent_index()
        return parent_index.get(str(student.id))
