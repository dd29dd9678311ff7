from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class JobHealth(BaseModel):
    enabled: bool
    runs: int = 0
    failures: int = 0
    last_tick: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_result: Optional[Any] = None
    recent_errors: list[str] = Field(default_factory=list)


class SchedulerHealthResponse(BaseModel):
    """Health of every background job known to the process."""

    jobs: dict[str, JobHealth]
