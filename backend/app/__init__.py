"""Tutoring center billing backend."""

from __future__ import annotations


def get_app():
    """Return the FastAPI application, importing it on first use."""

    from .main import app as fastapi_app

    return fastapi_app


try:
    from .main import app
except Exception:  # pragma: no cover - keep Alembic and the CLI importable
    app = None


__all__ = ["app", "get_app"]
