"""Expose the tutoring billing FastAPI app and enforce local development CORS defaults."""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Callable, Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .migrations import run_database_migrations
from .routers import (
    admin_billing_router,
    classes_router,
    metrics_router,
    parent_billing_router,
)
from .services.bill_scheduler import (
    start_bill_generation_scheduler,
    stop_bill_generation_scheduler,
)
from .services.class_status import start_class_status_updater, stop_class_status_updater
from .services.job_config import read_bool
from .services.scheduler_monitor import (
    JOB_BILL_GENERATION,
    JOB_CLASS_STATUS,
    SchedulerMonitor,
)

# Ports used by the parent/admin portal dev servers.
LOCAL_DEVELOPMENT_ORIGINS = {
    "http://localhost:3000",
    "http://localhost:5173",
}
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$"

DEFAULT_ALLOWED_ORIGINS = {
    *LOCAL_DEVELOPMENT_ORIGINS,
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
}


def _normalize_origin(origin: str) -> str | None:
    stripped = origin.strip()
    if not stripped:
        return None
    return stripped.rstrip("/")


def _read_allowed_origins(raw_origins: Iterable[str]) -> list[str]:
    normalized = {_normalize_origin(origin) for origin in raw_origins}
    return sorted({origin for origin in normalized if origin})


def _split_raw_origins(raw_value: str) -> list[str]:
    """Split ``BACKEND_ALLOWED_ORIGINS`` on commas and/or whitespace."""

    return [origin for origin in re.split(r"[\s,]+", raw_value) if origin]


def _resolve_allowed_origins() -> list[str]:
    raw_value = os.getenv("BACKEND_ALLOWED_ORIGINS")
    configured = _read_allowed_origins(_split_raw_origins(raw_value)) if raw_value else []
    origins = configured or _read_allowed_origins(DEFAULT_ALLOWED_ORIGINS)
    # Local portal origins stay allowed even when the variable omits them.
    return _read_allowed_origins([*origins, *LOCAL_DEVELOPMENT_ORIGINS])


def _maybe_start_job(env_flag: str, job_name: str, starter: Callable[[], None]) -> None:
    enabled = read_bool(env_flag, True)
    SchedulerMonitor.set_job_enabled(job_name, enabled)
    if not enabled:
        LOGGER.info("%s disabled via %s", job_name, env_flag)
        return
    starter()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_database_is_ready()
    start_background_jobs()
    try:
        yield
    finally:
        stop_background_jobs()


app = FastAPI(title="Tutoring Center Billing API", lifespan=lifespan)

LOGGER = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_allowed_origins(),
    allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_billing_router, prefix="/admin-billing", tags=["admin-billing"])
app.include_router(parent_billing_router, prefix="/parent-billing", tags=["parent-billing"])
app.include_router(classes_router, prefix="/classes", tags=["classes"])
app.include_router(metrics_router, prefix="/metrics", tags=["metrics"])


def ensure_database_is_ready() -> None:
    """Apply pending database migrations when the service starts."""

    LOGGER.info("Ensuring database schema is up to date before serving requests")
    run_database_migrations()


def start_background_jobs() -> None:
    """Start the bill generation trigger and the class status updater."""

    _maybe_start_job(
        env_flag="ENABLE_BILL_GENERATION",
        job_name=JOB_BILL_GENERATION,
        starter=start_bill_generation_scheduler,
    )
    _maybe_start_job(
        env_flag="ENABLE_CLASS_STATUS_UPDATER",
        job_name=JOB_CLASS_STATUS,
        starter=start_class_status_updater,
    )


@app.get("/", tags=["health"])
def read_root() -> dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}


def stop_background_jobs() -> None:
    """Ensure background tasks are stopped when the application shuts down."""

    stop_bill_generation_scheduler()
    stop_class_status_updater()
