"""Daily trigger that bills upcoming months once the cutoff day is reached."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import database
from .bill_batch import BillBatchService, BillRunSummary
from .billing_policy import AHEAD_BILLING_CUTOFF_DAY, ahead_billing_months
from .job_config import read_bool, read_int
from .scheduler_monitor import JOB_BILL_GENERATION, SchedulerMonitor

LOGGER = logging.getLogger(__name__)

RUN_HOUR_ENV = "BILL_GENERATION_RUN_HOUR"
RUN_MINUTE_ENV = "BILL_GENERATION_RUN_MINUTE"
RUN_ON_START_ENV = "BILL_GENERATION_RUN_ON_START"

DEFAULT_RUN_HOUR = 0
DEFAULT_RUN_MINUTE = 5


def run_scheduled_bill_generation(
    today: Optional[date] = None,
    *,
    session_factory: Optional[Callable[[], Session]] = None,
) -> list[BillRunSummary]:
    """Run the monthly batch for every month due on ``today``.

    Nothing happens before the cutoff day. From the cutoff onwards next month is
    billed, and on days 25-28 the month after next as well.
    """

    today = today or datetime.now(timezone.utc).date()
    months = ahead_billing_months(today)
    if not months:
        LOGGER.info(
            "Day %d is before day %d; no bills generated ahead",
            today.day,
            AHEAD_BILLING_CUTOFF_DAY,
        )
        return []

    summaries: list[BillRunSummary] = []
    for month_year in months:
        with database.session_scope(session_factory) as session:
            summary = BillBatchService(session).auto_generate_bills_for_month(month_year)
        LOGGER.info("Scheduled bill generation: %s", summary.to_dict())
        summaries.append(summary)
    return summaries


_bill_thread: Optional[threading.Thread] = None
_bill_stop = threading.Event()


def _seconds_until_next_run(now: datetime, run_hour: int, run_minute: int) -> float:
    scheduled_time = time(hour=run_hour, minute=run_minute, tzinfo=timezone.utc)
    next_run = datetime.combine(now.date(), scheduled_time)
    if next_run <= now:
        next_run += timedelta(days=1)
    delay = (next_run - now).total_seconds()
    return max(delay, 60.0)


def _execute_bill_cycle() -> None:
    try:
        summaries = run_scheduled_bill_generation()
        SchedulerMonitor.record_success(
            JOB_BILL_GENERATION, [summary.to_dict() for summary in summaries]
        )
        for summary in summaries:
            if summary.error_count:
                SchedulerMonitor.record_error(
                    JOB_BILL_GENERATION,
                    f"{summary.error_count} students failed for {summary.month_year}",
                )
    except Exception as exc:
        LOGGER.exception("Scheduled bill generation failed: %s", exc)
        SchedulerMonitor.record_error(JOB_BILL_GENERATION, str(exc))
    finally:
        SchedulerMonitor.record_tick(JOB_BILL_GENERATION)


def _bill_worker() -> None:
    run_hour = read_int(RUN_HOUR_ENV, DEFAULT_RUN_HOUR, minimum=0, maximum=23)
    run_minute = read_int(RUN_MINUTE_ENV, DEFAULT_RUN_MINUTE, minimum=0, maximum=59)

    if read_bool(RUN_ON_START_ENV, True):
        _execute_bill_cycle()

    while not _bill_stop.is_set():
        now = datetime.now(timezone.utc)
        wait_seconds = _seconds_until_next_run(now, run_hour, run_minute)
        if _bill_stop.wait(wait_seconds):
            break
        _execute_bill_cycle()


def start_bill_generation_scheduler() -> None:
    """Start the background worker that bills upcoming months every day."""

    global _bill_thread
    if _bill_thread and _bill_thread.is_alive():
        return

    _bill_stop.clear()
    _bill_thread = threading.Thread(target=_bill_worker, name="bill-generation", daemon=True)
    _bill_thread.start()
    LOGGER.info("Bill generation scheduler started.")


def stop_bill_generation_scheduler() -> None:
    """Stop the bill generation background worker."""

    _bill_stop.set()
    if _bill_thread and _bill_thread.is_alive():
        _bill_thread.join(timeout=5)
        LOGGER.info("Bill generation scheduler stopped.")
