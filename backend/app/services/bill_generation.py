"""Create, refresh and reconcile monthly class bills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from .. import models
from ..schemas.profiles import StudentProfile
from .billing_amounts import calculate_amount, quantize_amount, to_decimal
from .billing_policy import due_date_for, should_generate_ahead_billing
from .occurrences import (
    ClassSchedule,
    add_months,
    month_bounds,
    month_key,
    occurrences,
    occurrences_between,
    parse_month_year,
)
from .repositories import BillRepository, ClassCatalog, UserDirectory

LOGGER = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
REFUND_REQUIRED_NOTE = "REFUND REQUIRED (class cancelled after payment)"
ADDITIONAL_PAYMENT_NOTE = "ADDITIONAL PAYMENT REQUIRED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StudentMonthBilling:
    """Occurrences and totals owed by one student for one month."""

    month_year: str
    total_classes: int = 0
    amount: Decimal = Decimal("0.00")
    currency: str = DEFAULT_CURRENCY
    class_ids: list[str] = field(default_factory=list)
    occurrence_dates: dict[str, list[date]] = field(default_factory=dict)


class BillGenerationService:
    """Keeps one bill per student, parent and month in line with the class catalog."""

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock
        self.bills = BillRepository(db)
        self.classes = ClassCatalog(db)
        self.users = UserDirectory(db)

    def today(self) -> date:
        return self.clock().date()

    def calculate_student_month(
        self,
        student_id: str,
        month_year: str,
        *,
        exclude_class_ids: Iterable[str] = (),
    ) -> StudentMonthBilling:
        """Sum the occurrences of every billable class of the student in the month."""

        parse_month_year(month_year)
        result = StudentMonthBilling(month_year=month_year)
        currency: Optional[str] = None
        total = Decimal("0")

        for tutoring_class in self.classes.list_billable_classes_for_student(
            student_id, exclude_ids=exclude_class_ids
        ):
            dates = occurrences(ClassSchedule.from_class(tutoring_class), month_year)
            if not dates:
                continue
            total += calculate_amount(tutoring_class.amount, len(dates))
            result.total_classes += len(dates)
            result.class_ids.append(tutoring_class.id)
            result.occurrence_dates[tutoring_class.id] = dates
            if currency is None:
                currency = tutoring_class.currency
            elif tutoring_class.currency != currency:
                LOGGER.warning(
                    "Class %s bills in %s but student %s is billed in %s for %s",
                    tutoring_class.id,
                    tutoring_class.currency,
                    student_id,
                    currency,
                    month_year,
                )

        result.amount = quantize_amount(total)
        result.currency = currency or DEFAULT_CURRENCY
        return result

    def generate_or_update_bill(
        self, student_id: str, parent_id: str, month_year: str
    ) -> models.ClassBill:
        """Create or refresh the bill identified by ``(student, parent, month)``.

        Counts, amount, currency, class ids and due date are recomputed; notes and
        status of an existing bill are preserved. A zero bill is still persisted.
        """

        breakdown = self.calculate_student_month(student_id, month_year)
        if breakdown.total_classes == 0:
            LOGGER.info(
                "No classes for student %s in %s; keeping a zero bill", student_id, month_year
            )

        due_date = due_date_for(month_year)
        bill = self.bills.find_by_key(student_id, parent_id, month_year)
        if bill is not None:
            LOGGER.info("Updating bill %s for student %s in %s", bill.id, student_id, month_year)
            bill.total_classes_count = breakdown.total_classes
            bill.amount = breakdown.amount
            bill.currency = breakdown.currency
            bill.class_ids = breakdown.class_ids
            bill.due_date = due_date
            self.bills.save(bill)
        else:
            LOGGER.info("Creating bill for student %s in %s", student_id, month_year)
            bill = self.bills.create(
                student_id=str(student_id),
                parent_id=str(parent_id),
                month_year=month_year,
                total_classes_count=breakdown.total_classes,
                amount=breakdown.amount,
                currency=breakdown.currency,
                status=models.BillStatus.UNPAID,
                billing_generated_date=self.clock(),
                due_date=due_date,
                class_ids=breakdown.class_ids,
                notes=f"Auto-generated bill for {month_year}",
            )

        self.bills.commit()
        return bill

    def get_parent_bills(
        self, parent_id: str, month_year: Optional[str] = None
    ) -> list[models.ClassBill]:
        if month_year is not None:
            parse_month_year(month_year)
        return self.bills.list_by_parent(parent_id, month_year)

    def get_parent_current_month_bills(
        self, parent_id: str, *, today: Optional[date] = None
    ) -> list[models.ClassBill]:
        return self.get_parent_bills(parent_id, month_key(today or self.today()))

    def handle_class_deletion(self, class_id: str) -> list[models.ClassBill]:
        """Recompute every bill that referenced ``class_id``.

        Each bill is committed on its own; a failing bill is logged and skipped.
        """

        class_id = str(class_id)
        affected = self.bills.find_containing_class(class_id)
        LOGGER.info("Class %s deletion affects %d bills", class_id, len(affected))

        updated: list[models.ClassBill] = []
        for bill in affected:
            bill_id = bill.id
            try:
                previous_amount = to_decimal(bill.amount)
                # Only scheduled classes are counted, so classes already marked
                # completed drop out of past months too.
                breakdown = self.calculate_student_month(
                    bill.student_id, bill.month_year, exclude_class_ids=[class_id]
                )
                bill.class_ids = breakdown.class_ids
                bill.total_classes_count = breakdown.total_classes
                bill.amount = breakdown.amount
                if breakdown.class_ids:
                    bill.currency = breakdown.currency
                bill.append_note(
                    f"Class {class_id} was deleted on {self.clock().isoformat(timespec='seconds')}"
                )
                if bill.status == models.BillStatus.PAID and breakdown.amount < previous_amount:
                    LOGGER.warning(
                        "Bill %s was paid before class %s was deleted; refund required",
                        bill_id,
                        class_id,
                    )
                    bill.append_note(REFUND_REQUIRED_NOTE)
                self.bills.save(bill)
                self.bills.commit()
            except Exception:
                self.db.rollback()
                LOGGER.exception("Failed to reconcile bill %s after deleting class %s", bill_id, class_id)
                continue
            updated.append(bill)

        return updated

    def generate_immediate_billing_for_class(
        self, tutoring_class: models.TutoringClass, *, today: Optional[date] = None
    ) -> list[models.ClassBill]:
        """Bill a newly scheduled class for the rest of the current month.

        From the cutoff day onwards recurring classes are also billed for next
        month. The class is merged into each student's existing monthly bill.
        """

        if tutoring_class.is_demo:
            LOGGER.info("Class %s is a demo class; no bills generated", tutoring_class.id)
            return []

        student_ids = tutoring_class.student_ids
        if not student_ids:
            LOGGER.info("Class %s has no students enrolled; skipping billing", tutoring_class.id)
            return []

        today = today or self.today()
        schedule = ClassSchedule.from_class(tutoring_class)
        current_month = month_key(today)
        planned = {current_month: self._remaining_in_current_month(schedule, today)}

        if (
            should_generate_ahead_billing(today)
            and schedule.schedule_type == models.ScheduleType.WEEKLY_RECURRING
        ):
            next_month = add_months(current_month, 1)
            next_month_start, _ = month_bounds(next_month)
            if schedule.end_date is not None and next_month_start <= schedule.end_date:
                planned[next_month] = len(occurrences(schedule, next_month))
        elif schedule.schedule_type == models.ScheduleType.WEEKLY_RECURRING:
            LOGGER.debug(
                "Day %d is before the cutoff; next month for class %s is left to the scheduler",
                today.day,
                tutoring_class.id,
            )

        parent_index: Optional[dict[str, str]] = None
        bills: list[models.ClassBill] = []
        for student_id in student_ids:
            try:
                student = self.users.get_user(student_id)
                if student is None:
                    LOGGER.warning("Student %s not found; skipping billing", student_id)
                    continue
                if parent_index is None and not StudentProfile.parse(student.student_profile).parent_id:
                    parent_index = self.users.build_parent_index()
                parent_id = self.users.resolve_parent_id(student, parent_index=parent_index)
                if not parent_id:
                    LOGGER.warning("Student %s has no parent linked; skipping billing", student_id)
                    continue

                for month_year, count in planned.items():
                    if count > 0:
                        bills.append(
                            self._merge_class_into_bill(
                                student_id, parent_id, month_year, tutoring_class, count
                            )
                        )
                self.bills.commit()
            except Exception:
                self.db.rollback()
                LOGGER.exception(
                    "Failed to bill class %s for student %s", tutoring_class.id, student_id
                )

        LOGGER.info("Immediate billing for class %s produced %d bills", tutoring_class.id, len(bills))
        return bills

    @staticmethod
    def _remaining_in_current_month(schedule: ClassSchedule, today: date) -> int:
        current_month = month_key(today)
        if schedule.schedule_type == models.ScheduleType.ONE_TIME:
            return len(occurrences(schedule, current_month))
        _, month_end = month_bounds(current_month)
        return len(occurrences_between(schedule, today, month_end))

    def _merge_class_into_bill(
        self,
        student_id: str,
        parent_id: str,
        month_year: str,
        tutoring_class: models.TutoringClass,
        count: int,
    ) -> models.ClassBill:
        amount = calculate_amount(tutoring_class.amount, count)
        bill = self.bills.find_by_key(student_id, parent_id, month_year)
        if bill is None:
            return self.bills.create(
                student_id=str(student_id),
                parent_id=str(parent_id),
                month_year=month_year,
                total_classes_count=count,
                amount=amount,
                currency=tutoring_class.currency,
                status=models.BillStatus.UNPAID,
                billing_generated_date=self.clock(),
                due_date=due_date_for(month_year),
                class_ids=[tutoring_class.id],
                notes=f"Auto-generated for class: {tutoring_class.title}",
            )

        if tutoring_class.id in bill.class_ids:
            LOGGER.info("Class %s already billed on bill %s", tutoring_class.id, bill.id)
            return bill

        if bill.currency != tutoring_class.currency:
            LOGGER.warning(
                "Merging %s class %s into %s bill %s without conversion",
                tutoring_class.currency,
                tutoring_class.id,
                bill.currency,
                bill.id,
            )
        bill.total_classes_count = (bill.total_classes_count or 0) + count
        bill.amount = quantize_amount(to_decimal(bill.amount) + amount)
        bill.class_ids = [*bill.class_ids, tutoring_class.id]
        bill.append_note(f"Added class: {tutoring_class.title} ({count} classes)")
        if bill.status != models.BillStatus.UNPAID:
            LOGGER.warning(
                "Bill %s was %s before class %s was added; reopening it",
                bill.id,
                bill.status.value,
                tutoring_class.id,
            )
            bill.append_note(
                f"{ADDITIONAL_PAYMENT_NOTE} ({amount} {tutoring_class.currency}); "
                f"reopened from {bill.status.value}"
            )
            bill.status = models.BillStatus.UNPAID
        return self.bills.save(bill)
