"""Exceptions raised by the class billing services."""

from __future__ import annotations


class BillingServiceError(RuntimeError):
    """Base class for billing failures."""


class InvalidInputError(BillingServiceError, ValueError):
    """Raised when a caller passes a value the billing engine cannot accept."""


class InvalidMonthFormatError(InvalidInputError):
    """Raised when a month key is not in the ``YYYY-MM`` format."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid month format {value!r}, expected YYYY-MM")
        self.value = value


class NotFoundError(BillingServiceError, LookupError):
    """Raised when a referenced bill, class or user does not exist."""


class PersistenceError(BillingServiceError):
    """Raised when the storage engine rejects a billing write or read."""
