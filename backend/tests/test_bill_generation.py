from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from backend.app import models
from backend.app.services.bill_generation import BillGenerationService
from backend.app.services.billing_errors import InvalidMonthFormatError, PersistenceError

NOW = datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session) -> BillGenerationService:
    return BillGenerationService(db_session, clock=lambda: NOW)


def test_calculate_student_month_sums_all_billable_classes(service, family, make_class):
    student = family["student"]
    maths = make_class("Maths", [student])
    physics = make_class("Physics", [student], recurring_days=["friday"], amount=Decimal("35.50"))
    make_class("Trial", [student], payment_status=models.ClassPaymentStatus.DEMO)
    make_class("Old", [student], status=models.ClassStatus.COMPLETED)

    breakdown = service.calculate_student_month(student.id, "2025-11")

    assert breakdown.total_classes == 12
    assert breakdown.amount == Decimal("302.00")
    assert breakdown.currency == "USD"
    assert set(breakdown.class_ids) == {maths.id, physics.id}
    assert len(breakdown.occurrence_dates[physics.id]) == 4


def test_generate_bill_creates_unpaid_bill(service, family, make_class):
    student, parent = family["student"], family["parent"]
    maths = make_class("Maths", [student])

    bill = service.generate_or_update_bill(student.id, parent.id, "2025-11")

    assert bill.status == models.BillStatus.UNPAID
    assert bill.total_classes_count == 8
    assert bill.amount == Decimal("160.00")
    assert bill.currency == "USD"
    assert bill.class_ids == [maths.id]
    assert bill.due_date == date(2025, 11, 25)
    assert bill.notes == "Auto-generated bill for 2025-11"


def test_regenerating_updates_totals_but_keeps_status_and_notes(
    service, db_session, family, make_class
):
    student, parent = family["student"], family["parent"]
    make_class("Maths", [student])
    first = service.generate_or_update_bill(student.id, parent.id, "2025-11")
    first.status = models.BillStatus.PAID
    first.append_note("Paid in cash")
    db_session.commit()

    make_class("Chemistry", [student], recurring_days=["tuesday"], amount=Decimal("10.00"))
    second = service.generate_or_update_bill(student.id, parent.id, "2025-11")

    assert second.id == first.id
    assert second.total_classes_count == 12
    assert second.amount == Decimal("200.00")
    assert second.status == models.BillStatus.PAID
    assert second.notes == "Auto-generated bill for 2025-11\nPaid in cash"
    assert db_session.query(models.ClassBill).count() == 1


def test_regenerating_without_changes_is_idempotent(service, db_session, family, make_class):
    student, parent = family["student"], family["parent"]
    make_class("Maths", [student])

    first = service.generate_or_update_bill(student.id, parent.id, "2025-11")
    snapshot = (first.id, first.total_classes_count, first.amount, first.class_ids)
    second = service.generate_or_update_bill(student.id, parent.id, "2025-11")

    assert (second.id, second.total_classes_count, second.amount, second.class_ids) == snapshot
    assert db_session.query(models.ClassBillItem).count() == 1


def test_month_without_classes_still_gets_a_zero_bill(service, family, make_class):
    student, parent = family["student"], family["parent"]
    make_class("Maths", [student])

    bill = service.generate_or_update_bill(student.id, parent.id, "2026-03")

    assert bill.total_classes_count == 0
    assert bill.amount == Decimal("0.00")
    assert bill.class_ids == []


def test_invalid_month_is_rejected_before_touching_storage(service, db_session, family):
    with pytest.raises(InvalidMonthFormatError):
        service.generate_or_update_bill(family["student"].id, family["parent"].id, "2025-1")

    assert db_session.query(models.ClassBill).count() == 0


def test_storage_failure_surfaces_as_persistence_error(
    service, db_session, family, make_class, monkeypatch
):
    student, parent = family["student"], family["parent"]
    make_class("Maths", [student])

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        service.generate_or_update_bill(student.id, parent.id, "2025-11")


def test_parent_bills_are_filtered_by_month(service, family, make_class, make_user):
    student, parent = family["student"], family["parent"]
    make_class("Maths", [student])
    other_parent = make_user(models.UserRole.PARENT, "Meera")
    other_student = make_user(
        models.UserRole.STUDENT, "Kabir", student_profile={"parentId": other_parent.id}
    )
    make_class("Art", [other_student])

    service.generate_or_update_bill(student.id, parent.id, "2025-11")
    service.generate_or_update_bill(student.id, parent.id, "2025-12")
    service.generate_or_update_bill(other_student.id, other_parent.id, "2025-11")

    all_bills = service.get_parent_bills(parent.id)
    november = service.get_parent_bills(parent.id, "2025-11")
    current = service.get_parent_current_month_bills(parent.id, today=date(2025, 12, 3))

    assert [bill.month_year for bill in all_bills] == ["2025-12", "2025-11"]
    assert [bill.month_year for bill in november] == ["2025-11"]
    assert [bill.month_year for bill in current] == ["2025-12"]


def test_parent_bills_reject_invalid_month(service, family):
    with pytest.raises(InvalidMonthFormatError):
        service.get_parent_bills(family["parent"].id, "November")
