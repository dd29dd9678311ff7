"""Routers package."""

from .admin_billing import router as admin_billing_router
from .classes import router as classes_router
from .metrics import router as metrics_router
from .parent_billing import router as parent_billing_router

__all__ = [
    "admin_billing_router",
    "classes_router",
    "metrics_router",
    "parent_billing_router",
]
