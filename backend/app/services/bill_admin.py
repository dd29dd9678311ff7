"""Administrative bookkeeping on class bills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Protocol, Sequence, Tuple

from sqlalchemy.orm import Session

from .. import models
from .bill_generation import utcnow
from .billing_amounts import quantize_amount, to_decimal
from .billing_errors import InvalidInputError, NotFoundError
from .occurrences import parse_month_year
from .repositories import BillRepository

LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


class AmountConverter(Protocol):
    base_currency: str

    def convert(self, amount: object, from_currency: str) -> Decimal:
        ...


@dataclass
class BillSummary:
    """Totals over a set of bills, in the currencies stored on each bill."""

    count: int = 0
    total_amount: Decimal = Decimal("0.00")
    paid_amount: Decimal = Decimal("0.00")
    unpaid_amount: Decimal = Decimal("0.00")
    by_status: dict[str, int] = field(
        default_factory=lambda: {status.value: 0 for status in models.BillStatus}
    )
    currencies: list[str] = field(default_factory=list)
    base_currency: Optional[str] = None
    total_in_base_currency: Optional[Decimal] = None


def summarize(
    bills: Iterable[models.ClassBill],
    *,
    base_currency: Optional[str] = None,
    converter: Optional[AmountConverter] = None,
) -> BillSummary:
    """Aggregate bill amounts; ``converter`` adds a total in a single currency."""

    summary = BillSummary()
    total = paid = unpaid = Decimal("0")
    converted: Optional[Decimal] = Decimal("0") if converter is not None else None
    currencies: set[str] = set()

    for bill in bills:
        amount = to_decimal(bill.amount)
        status = models.BillStatus(bill.status)
        summary.count += 1
        summary.by_status[status.value] = summary.by_status.get(status.value, 0) + 1
        currencies.add(bill.currency)
        total += amount
        if status == models.BillStatus.PAID:
            paid += amount
        elif status == models.BillStatus.UNPAID:
            unpaid += amount
        if converted is not None:
            converted += converter.convert(amount, bill.currency)

    summary.total_amount = quantize_amount(total)
    summary.paid_amount = quantize_amount(paid)
    summary.unpaid_amount = quantize_amount(unpaid)
    summary.currencies = sorted(currencies)
    if converter is not None:
        summary.base_currency = base_currency or converter.base_currency
        summary.total_in_base_currency = quantize_amount(converted)
    elif len(currencies) > 1:
        LOGGER.debug("Summarising bills in %s without conversion", summary.currencies)
    return summary


class BillAdminService:
    """Status changes and notes applied by administrators."""

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock
        self.bills = BillRepository(db)

    def list_bills(
        self,
        *,
        statuses: Optional[Sequence[models.BillStatus | str]] = None,
        month_year: Optional[str] = None,
        parent_id: Optional[str] = None,
        student_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[list[models.ClassBill], int]:
        if month_year:
            parse_month_year(month_year)
        try:
            resolved = [models.BillStatus(value) for value in statuses or ()]
        except ValueError as exc:
            raise InvalidInputError(f"Unknown bill status: {exc}") from exc
        if skip < 0 or limit < 1:
            raise InvalidInputError("skip must be >= 0 and limit >= 1")
        return self.bills.list_bills(
            statuses=resolved,
            month_year=month_year,
            parent_id=parent_id,
            student_id=student_id,
            skip=skip,
            limit=min(limit, MAX_PAGE_SIZE),
        )

    def _require_bill(self, bill_id: str) -> models.ClassBill:
        bill = self.bills.get(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return bill

    def _timestamp(self) -> str:
        return self.clock().isoformat(timespec="seconds")

    def _set_status(
        self, bill_id: str, status: models.BillStatus, verb: str, note: Optional[str]
    ) -> models.ClassBill:
        bill = self._require_bill(bill_id)
        bill.status = status
        entry = f"{verb} on {self._timestamp()}"
        if note and note.strip():
            entry = f"{entry}: {note.strip()}"
        bill.append_note(entry)
        self.bills.save(bill)
        self.bills.commit()
        LOGGER.info("Bill %s marked %s", bill_id, status.value)
        return bill

    def mark_paid(self, bill_id: str, note: Optional[str] = None) -> models.ClassBill:
        return self._set_status(bill_id, models.BillStatus.PAID, "Marked paid", note)

    def mark_unpaid(self, bill_id: str, note: Optional[str] = None) -> models.ClassBill:
        return self._set_status(bill_id, models.BillStatus.UNPAID, "Marked unpaid", note)

    def add_note(self, bill_id: str, note: str) -> models.ClassBill:
        if not note or not note.strip():
            raise InvalidInputError("Note text is required")
        bill = self._require_bill(bill_id)
        bill.append_note(f"[{self._timestamp()}] {note.strip()}")
        self.bills.save(bill)
        self.bills.commit()
        return bill
