from __future__ import annotations

from datetime import date, datetime, timezone

from backend.app import models
from backend.app.services import class_status
from backend.app.services.scheduler_monitor import JOB_CLASS_STATUS, SchedulerMonitor


def _one_time(make_class, title, class_date, *, start_time="16:00", duration=45):
    tutoring_class = make_class(
        title,
        [],
        schedule_type=models.ScheduleType.ONE_TIME,
        class_date=class_date,
    )
    tutoring_class.start_time = start_time
    tutoring_class.duration_minutes = duration
    return tutoring_class


def test_one_time_class_ends_after_its_duration(db_session, make_class):
    workshop = _one_time(make_class, "Workshop", date(2025, 11, 10))
    db_session.commit()

    assert class_status.class_ends_at(workshop) == datetime(
        2025, 11, 10, 16, 45, tzinfo=timezone.utc
    )


def test_recurring_class_ends_at_end_of_last_day(make_class):
    maths = make_class("Maths", [], end_date=date(2025, 11, 30))

    ends_at = class_status.class_ends_at(maths)

    assert ends_at.date() == date(2025, 11, 30)
    assert (ends_at.hour, ends_at.minute, ends_at.second) == (23, 59, 59)


def test_unreadable_start_time_falls_back_to_midnight(db_session, make_class):
    workshop = _one_time(make_class, "Workshop", date(2025, 11, 10), start_time="late", duration=30)
    db_session.commit()

    assert class_status.class_ends_at(workshop) == datetime(
        2025, 11, 10, 0, 30, tzinfo=timezone.utc
    )


def test_finished_classes_are_marked_completed(db_session, make_class):
    finished = _one_time(make_class, "Workshop", date(2025, 11, 10))
    running = _one_time(make_class, "Later workshop", date(2025, 11, 10), start_time="17:00")
    ended_series = make_class("Maths", [], end_date=date(2025, 11, 9))
    open_series = make_class("Physics", [], end_date=date(2025, 12, 31))
    db_session.commit()

    result = class_status.update_class_statuses(
        db_session, now=datetime(2025, 11, 10, 17, 0, tzinfo=timezone.utc)
    )

    assert result.updated == 2
    assert set(result.class_ids) == {finished.id, ended_series.id}
    db_session.expire_all()
    assert finished.status == models.ClassStatus.COMPLETED
    assert ended_series.status == models.ClassStatus.COMPLETED
    assert running.status == models.ClassStatus.SCHEDULED
    assert open_series.status == models.ClassStatus.SCHEDULED


def test_naive_now_is_treated_as_utc(db_session, make_class):
    make_class("Maths", [], end_date=date(2025, 11, 9))

    result = class_status.update_class_statuses(db_session, now=datetime(2025, 11, 10, 0, 0))

    assert result.updated == 1


def test_status_cycle_reports_to_the_monitor(session_factory, db_session, make_class):
    make_class("Maths", [], end_date=date(2025, 1, 31))

    class_status._execute_status_cycle(session_factory)

    status = SchedulerMonitor.snapshot()[JOB_CLASS_STATUS]
    assert status["runs"] == 1
    assert status["failures"] == 0
    assert status["last_result"]["updated"] == 1
