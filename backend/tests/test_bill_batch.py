from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backend.app import models
from backend.app.services.bill_batch import BillBatchService, BillRunSummary
from backend.app.services.billing_errors import InvalidMonthFormatError

NOW = datetime(2025, 11, 25, 0, 5, tzinfo=timezone.utc)


@pytest.fixture
def batch(db_session) -> BillBatchService:
    return BillBatchService(db_session, clock=lambda: NOW)


def _bills_by_student(db_session) -> dict[str, models.ClassBill]:
    return {bill.student_id: bill for bill in db_session.query(models.ClassBill).all()}


def test_batch_bills_every_enrolled_student(batch, db_session, family, make_user, make_class):
    linked_by_child_list = make_user(models.UserRole.STUDENT, "Diya")
    guardian = make_user(
        models.UserRole.PARENT, "Ravi", parent_profile={"childIds": [linked_by_child_list.id]}
    )
    make_class("Maths", [family["student"], linked_by_child_list])

    summary = batch.auto_generate_bills_for_month("2025-12")

    assert summary.total_students == 2
    assert summary.success_count == 2
    assert summary.error_count == 0
    bills = _bills_by_student(db_session)
    assert bills[family["student"].id].parent_id == family["parent"].id
    assert bills[linked_by_child_list.id].parent_id == guardian.id
    # December 2025 has five Mondays and five Wednesdays.
    assert bills[linked_by_child_list.id].total_classes_count == 10
    assert bills[linked_by_child_list.id].amount == Decimal("200.00")


def test_student_without_parent_is_reported_and_skipped(
    batch, db_session, family, make_user, make_class
):
    orphan = make_user(models.UserRole.STUDENT, "Tara")
    make_class("Maths", [family["student"], orphan])

    summary = batch.auto_generate_bills_for_month("2025-12")

    assert summary.total_students == 2
    assert summary.success_count == 1
    assert summary.errors == [{"student_id": orphan.id, "error": "No parent linked to student"}]
    assert set(_bills_by_student(db_session)) == {family["student"].id}


def test_one_failing_student_does_not_stop_the_batch(
    batch, db_session, family, make_user, make_class, monkeypatch
):
    other_parent = make_user(models.UserRole.PARENT, "Meera")
    other_student = make_user(
        models.UserRole.STUDENT, "Kabir", student_profile={"parent_id": other_parent.id}
    )
    make_class("Maths", [family["student"], other_student])

    original = batch.generator.generate_or_update_bill

    def flaky(student_id, parent_id, month_year):
        if student_id == family["student"].id:
            raise RuntimeError("boom")
        return original(student_id, parent_id, month_year)

    monkeypatch.setattr(batch.generator, "generate_or_update_bill", flaky)

    summary = batch.auto_generate_bills_for_month("2025-12")

    assert summary.success_count == 1
    assert summary.error_count == 1
    assert summary.errors[0] == {"student_id": family["student"].id, "error": "boom"}
    assert set(_bills_by_student(db_session)) == {other_student.id}


def test_only_students_with_classes_in_the_month_are_counted(
    batch, family, make_user, make_class
):
    later = make_user(models.UserRole.STUDENT, "Ishaan", student_profile={"parent_id": family["parent"].id})
    make_class("Maths", [family["student"]])
    make_class(
        "Summer camp",
        [later],
        start_date=datetime(2026, 6, 1).date(),
        end_date=datetime(2026, 6, 30).date(),
    )
    make_class("Cancelled", [later], status=models.ClassStatus.CANCELLED)

    summary = batch.auto_generate_bills_for_month("2025-12")

    assert summary.total_students == 1
    assert summary.success_count == 1


def test_rerunning_the_batch_updates_instead_of_duplicating(
    batch, db_session, family, make_class
):
    make_class("Maths", [family["student"]])

    batch.auto_generate_bills_for_month("2025-12")
    batch.auto_generate_bills_for_month("2025-12")

    assert db_session.query(models.ClassBill).count() == 1


def test_invalid_month_is_rejected(batch):
    with pytest.raises(InvalidMonthFormatError):
        batch.auto_generate_bills_for_month("2025-12-01")


def test_summary_serialises_to_plain_dict():
    summary = BillRunSummary(month_year="2025-12", total_students=2, success_count=1)
    summary.record_error("student-1", "No parent linked to student")
    summary.duration_seconds = 0.123456

    assert summary.to_dict() == {
        "month_year": "2025-12",
        "total_students": 2,
        "success_count": 1,
        "error_count": 1,
        "errors": [{"student_id": "student-1", "error": "No parent linked to student"}],
        "duration_seconds": 0.123,
    }


def test_demo_classes_do_not_pull_students_into_the_batch(
    batch, db_session, family, make_user, make_class
):
    trial_only = make_user(models.UserRole.STUDENT, "Isha", student_profile={"parent_id": family["parent"].id})
    make_class("Trial", [trial_only], payment_status=models.ClassPaymentStatus.DEMO)
    make_class("Maths", [family["student"]])

    summary = batch.auto_generate_bills_for_month("2025-12")

    assert summary.total_students == 1
    assert set(_bills_by_student(db_session)) == {family["student"].id}
