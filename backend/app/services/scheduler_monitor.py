"""Health tracking for the billing background jobs."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, MutableMapping, Optional

JOB_BILL_GENERATION = "bill_generation"
JOB_CLASS_STATUS = "class_status_updater"

KNOWN_JOBS = (JOB_BILL_GENERATION, JOB_CLASS_STATUS)


@dataclass
class JobStatus:
    """Runtime status of one scheduled job."""

    enabled: bool = True
    runs: int = 0
    failures: int = 0
    last_tick: datetime | None = None
    last_success: datetime | None = None
    last_result: Optional[Any] = None
    recent_errors: deque[str] = field(default_factory=lambda: deque(maxlen=10))


class SchedulerMonitor:
    """Thread-safe tracker shared by the scheduler threads and the metrics route."""

    _lock = Lock()
    _jobs: Dict[str, JobStatus] = {}

    @classmethod
    def _status(cls, job_name: str) -> JobStatus:
        return cls._jobs.setdefault(job_name, JobStatus())

    @classmethod
    def set_job_enabled(cls, job_name: str, enabled: bool) -> None:
        with cls._lock:
            cls._status(job_name).enabled = enabled

    @classmethod
    def record_tick(cls, job_name: str) -> None:
        with cls._lock:
            status = cls._status(job_name)
            status.runs += 1
            status.last_tick = datetime.now(timezone.utc)

    @classmethod
    def record_success(cls, job_name: str, result: Any = None) -> None:
        with cls._lock:
            status = cls._status(job_name)
            status.last_success = datetime.now(timezone.utc)
            status.last_result = result

    @classmethod
    def record_error(cls, job_name: str, message: str) -> None:
        timestamped = f"{datetime.now(timezone.utc).isoformat()} - {message}"
        with cls._lock:
            status = cls._status(job_name)
            status.failures += 1
            status.recent_errors.append(timestamped)

    @classmethod
    def snapshot(cls) -> MutableMapping[str, dict[str, object]]:
        with cls._lock:
            return {
                name: {
                    "enabled": status.enabled,
                    "runs": status.runs,
                    "failures": status.failures,
                    "last_tick": status.last_tick,
                    "last_success": status.last_success,
                    "last_result": status.last_result,
                    "recent_errors": list(status.recent_errors),
                }
                for name, status in cls._jobs.items()
            }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._jobs.clear()
