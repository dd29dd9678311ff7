from __future__ import annotations

from datetime import date
from decimal import Decimal

from backend.app import models


def _recurring_payload(student_ids, **overrides):
    payload = {
        "title": "Algebra",
        "schedule_type": "weekly-recurring",
        "start_date": "2025-11-01",
        "end_date": "2026-01-31",
        "recurring_days": ["Monday", "wednesday"],
        "start_time": "16:00",
        "amount": "20.00",
        "currency": "usd",
        "student_ids": student_ids,
    }
    payload.update(overrides)
    return payload


def test_create_class_bills_rest_of_current_month(client, db_session, family):
    response = client.post("/classes/", json=_recurring_payload([family["student"].id]))

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "scheduled"
    assert created["currency"] == "USD"
    assert created["recurring_days"] == ["monday", "wednesday"]
    assert created["student_ids"] == [family["student"].id]

    bill = db_session.query(models.ClassBill).one()
    assert bill.month_year == "2025-11"
    assert bill.total_classes_count == 6
    assert bill.amount == Decimal("120.00")
    assert bill.class_ids == [created["id"]]


def test_create_class_on_day_25_also_bills_next_month(client, db_session, family, today_holder):
    today_holder["today"] = date(2025, 11, 25)

    client.post("/classes/", json=_recurring_payload([family["student"].id]))

    months = sorted(bill.month_year for bill in db_session.query(models.ClassBill).all())
    assert months == ["2025-11", "2025-12"]


def test_demo_class_is_created_without_bills(client, db_session, family):
    response = client.post(
        "/classes/",
        json=_recurring_payload([family["student"].id], payment_status="democlass"),
    )

    assert response.status_code == 201
    assert db_session.query(models.ClassBill).count() == 0


def test_create_class_with_unknown_student_is_rejected(client, family):
    response = client.post("/classes/", json=_recurring_payload(["missing-student"]))

    assert response.status_code == 400


def test_create_class_rejects_parent_as_student(client, family):
    response = client.post("/classes/", json=_recurring_payload([family["parent"].id]))

    assert response.status_code == 400


def test_recurring_class_requires_days(client, family):
    response = client.post(
        "/classes/", json=_recurring_payload([family["student"].id], recurring_days=[])
    )

    assert response.status_code == 422


def test_recurring_class_rejects_unknown_weekday(client, family):
    response = client.post(
        "/classes/", json=_recurring_payload([family["student"].id], recurring_days=["funday"])
    )

    assert response.status_code == 422


def test_one_time_class_requires_date(client, family):
    response = client.post(
        "/classes/",
        json={
            "title": "Workshop",
            "schedule_type": "one-time",
            "amount": "45.00",
            "student_ids": [family["student"].id],
        },
    )

    assert response.status_code == 422


def test_get_class(client, family):
    created = client.post("/classes/", json=_recurring_payload([family["student"].id])).json()

    response = client.get(f"/classes/{created['id']}")

    assert response.status_code == 200
    assert response.json()["title"] == "Algebra"
    assert client.get("/classes/unknown").status_code == 404


def test_delete_class_reconciles_bills(client, db_session, family):
    created = client.post("/classes/", json=_recurring_payload([family["student"].id])).json()

    response = client.delete(f"/classes/{created['id']}")

    assert response.status_code == 200
    updated = response.json()["updated_bills"]
    assert len(updated) == 1
    assert updated[0]["class_ids"] == []
    assert Decimal(updated[0]["amount"]) == Decimal("0.00")
    assert f"Class {created['id']} was deleted on" in updated[0]["notes"]
    assert db_session.get(models.TutoringClass, created["id"]) is None
    assert client.delete(f"/classes/{created['id']}").status_code == 404
