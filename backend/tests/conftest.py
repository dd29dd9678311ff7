from __future__ import annotations

import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Background threads are started explicitly by the tests that need them.
os.environ.setdefault("ENABLE_BILL_GENERATION", "0")
os.environ.setdefault("ENABLE_CLASS_STATUS_UPDATER", "0")
os.environ.setdefault("EXCHANGE_RATE_API_KEY", "")

from backend.app import models  # noqa: E402
from backend.app.database import Base, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.routers.dependencies import get_today  # noqa: E402
from backend.app.services.exchange_rates import ExchangeRateCache, get_exchange_rate_cache  # noqa: E402
from backend.app.services.scheduler_monitor import SchedulerMonitor  # noqa: E402


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _reset_scheduler_monitor() -> Generator[None, None, None]:
    SchedulerMonitor.reset()
    yield
    SchedulerMonitor.reset()


@pytest.fixture
def today_holder() -> dict:
    return {"today": date(2025, 11, 10)}


@pytest.fixture
def client(db_session: Session, today_holder: dict, monkeypatch) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    monkeypatch.setattr("backend.app.main.run_database_migrations", lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: today_holder["today"]
    app.dependency_overrides[get_exchange_rate_cache] = lambda: ExchangeRateCache(None)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., models.User]:
    def _make_user(
        role: models.UserRole,
        first_name: str,
        *,
        student_profile: Optional[object] = None,
        parent_profile: Optional[object] = None,
    ) -> models.User:
        user = models.User(
            role=role,
            first_name=first_name,
            email=f"{first_name.lower()}@example.com",
            student_profile=student_profile,
            parent_profile=parent_profile,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_class(db_session: Session) -> Callable[..., models.TutoringClass]:
    def _make_class(
        title: str,
        students: list[models.User],
        *,
        schedule_type: models.ScheduleType = models.ScheduleType.WEEKLY_RECURRING,
        class_date: Optional[date] = None,
        start_date: Optional[date] = date(2025, 11, 1),
        end_date: Optional[date] = date(2026, 1, 31),
        recurring_days: Optional[list[str]] = None,
        amount: Decimal = Decimal("20.00"),
        currency: str = "USD",
        payment_status: models.ClassPaymentStatus = models.ClassPaymentStatus.UNPAID,
        status: models.ClassStatus = models.ClassStatus.SCHEDULED,
    ) -> models.TutoringClass:
        if schedule_type == models.ScheduleType.ONE_TIME:
            start_date = end_date = None
        tutoring_class = models.TutoringClass(
            title=title,
            schedule_type=schedule_type,
            class_date=class_date,
            start_date=start_date,
            end_date=end_date,
            recurring_days=recurring_days
            if recurring_days is not None
            else (["monday", "wednesday"] if schedule_type == models.ScheduleType.WEEKLY_RECURRING else None),
            amount=amount,
            currency=currency,
            payment_status=payment_status,
            status=status,
        )
        tutoring_class.students = list(students)
        db_session.add(tutoring_class)
        db_session.commit()
        return tutoring_class

    return _make_class


@pytest.fixture
def family(make_user) -> dict:
    """A parent linked to one student through the student's profile."""

    parent = make_user(models.UserRole.PARENT, "Priya")
    student = make_user(
        models.UserRole.STUDENT, "Arjun", student_profile={"parent_id": parent.id}
    )
    return {"parent": parent, "student": student}
