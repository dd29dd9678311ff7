"""Service layer encapsulating billing logic for API routers and jobs."""

from .bill_admin import BillAdminService, BillSummary, summarize
from .bill_batch import BillBatchService, BillRunSummary, auto_generate_bills_for_month
from .bill_generation import BillGenerationService, StudentMonthBilling
from .bill_scheduler import (
    run_scheduled_bill_generation,
    start_bill_generation_scheduler,
    stop_bill_generation_scheduler,
)
from .billing_errors import (
    BillingServiceError,
    InvalidInputError,
    InvalidMonthFormatError,
    NotFoundError,
    PersistenceError,
)
from .class_status import (
    ClassStatusUpdateResult,
    start_class_status_updater,
    stop_class_status_updater,
    update_class_statuses,
)
from .classes import ClassService
from .exchange_rates import ExchangeRateCache, HttpExchangeRateFetcher, get_exchange_rate_cache

__all__ = [
    "BillAdminService",
    "BillSummary",
    "summarize",
    "BillBatchService",
    "BillRunSummary",
    "auto_generate_bills_for_month",
    "BillGenerationService",
    "StudentMonthBilling",
    "run_scheduled_bill_generation",
    "start_bill_generation_scheduler",
    "stop_bill_generation_scheduler",
    "BillingServiceError",
    "InvalidInputError",
    "InvalidMonthFormatError",
    "NotFoundError",
    "PersistenceError",
    "ClassStatusUpdateResult",
    "start_class_status_updater",
    "stop_class_status_updater",
    "update_class_statuses",
    "ClassService",
    "ExchangeRateCache",
    "HttpExchangeRateFetcher",
    "get_exchange_rate_cache",
]
