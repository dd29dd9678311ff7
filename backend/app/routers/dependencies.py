"""Helpers shared by the billing routers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator

from fastapi import HTTPException, status

from ..services.billing_errors import InvalidInputError, NotFoundError, PersistenceError

LOGGER = logging.getLogger(__name__)


def get_today() -> date:
    """Calendar date used by the billing endpoints; overridden in tests."""

    return datetime.now(timezone.utc).date()


@contextmanager
def billing_errors_as_http(action: str) -> Iterator[None]:
    """Translate billing service errors into HTTP responses."""

    try:
        yield
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        LOGGER.exception("Failed to %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Could not {action}. Try again later.",
        ) from exc
