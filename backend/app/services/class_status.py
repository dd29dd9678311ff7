"""Mark classes completed once their last session has ended."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import database, models
from .job_config import read_int
from .scheduler_monitor import JOB_CLASS_STATUS, SchedulerMonitor

LOGGER = logging.getLogger(__name__)

INTERVAL_ENV = "CLASS_STATUS_INTERVAL_MINUTES"
DEFAULT_INTERVAL_MINUTES = 5
DEFAULT_DURATION_MINUTES = 35
END_OF_DAY = time(23, 59, 59, 999000, tzinfo=timezone.utc)


@dataclass
class ClassStatusUpdateResult:
    updated: int = 0
    class_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {"updated": self.updated, "class_ids": list(self.class_ids)}


def _parse_start_time(raw: Optional[str]) -> time:
    try:
        hours, minutes = (int(part) for part in (raw or "00:00").split(":")[:2])
        return time(hours, minutes, tzinfo=timezone.utc)
    except ValueError:
        LOGGER.warning("Unreadable start time %r; assuming midnight", raw)
        return time(0, 0, tzinfo=timezone.utc)


def class_ends_at(tutoring_class: models.TutoringClass) -> Optional[datetime]:
    """Return the moment after which the class has no sessions left."""

    if tutoring_class.schedule_type == models.ScheduleType.ONE_TIME:
        if tutoring_class.class_date is None:
            return None
        starts_at = datetime.combine(
            tutoring_class.class_date, _parse_start_time(tutoring_class.start_time)
        )
        duration = tutoring_class.duration_minutes or DEFAULT_DURATION_MINUTES
        return starts_at + timedelta(minutes=duration)

    if tutoring_class.end_date is None:
        return None
    return datetime.combine(tutoring_class.end_date, END_OF_DAY)


def update_class_statuses(
    db: Session, *, now: Optional[datetime] = None
) -> ClassStatusUpdateResult:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    result = ClassStatusUpdateResult()

    scheduled = (
        db.query(models.TutoringClass)
        .filter(models.TutoringClass.status == models.ClassStatus.SCHEDULED)
        .all()
    )
    for tutoring_class in scheduled:
        class_id = tutoring_class.id
        try:
            ends_at = class_ends_at(tutoring_class)
            if ends_at is None or ends_at >= now:
                continue
            tutoring_class.status = models.ClassStatus.COMPLETED
            db.commit()
        except Exception:
            db.rollback()
            LOGGER.exception("Failed to complete class %s", class_id)
            continue
        result.updated += 1
        result.class_ids.append(class_id)

    if result.updated:
        LOGGER.info("Marked %d classes as completed", result.updated)
    return result


_status_thread: Optional[threading.Thread] = None
_status_stop = threading.Event()


def _execute_status_cycle(session_factory: Optional[Callable[[], Session]] = None) -> None:
    try:
        with database.session_scope(session_factory) as session:
            result = update_class_statuses(session)
        SchedulerMonitor.record_success(JOB_CLASS_STATUS, result.to_dict())
    except Exception as exc:
        LOGGER.exception("Class status update failed: %s", exc)
        SchedulerMonitor.record_error(JOB_CLASS_STATUS, str(exc))
    finally:
        SchedulerMonitor.record_tick(JOB_CLASS_STATUS)


def _status_worker() -> None:
    interval = read_int(INTERVAL_ENV, DEFAULT_INTERVAL_MINUTES, minimum=1) * 60
    while not _status_stop.is_set():
        _execute_status_cycle()
        if _status_stop.wait(interval):
            break


def start_class_status_updater() -> None:
    """Start the background worker that completes finished classes."""

    global _status_thread
    if _status_thread and _status_thread.is_alive():
        return

    _status_stop.clear()
    _status_thread = threading.Thread(target=_status_worker, name="class-status", daemon=True)
    _status_thread.start()
    LOGGER.info("Class status updater started.")


def stop_class_status_updater() -> None:
    _status_stop.set()
    if _status_thread and _status_thread.is_alive():
        _status_thread.join(timeout=5)
        LOGGER.info("Class status updater stopped.")


__all__ = [
    "ClassStatusUpdateResult",
    "class_ends_at",
    "start_class_status_updater",
    "stop_class_status_updater",
    "update_class_statuses",
]
