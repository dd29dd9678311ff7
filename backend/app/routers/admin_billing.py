"""Router exposing administrative bill operations."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import (
    BillAdminService,
    BillBatchService,
    BillGenerationService,
    ExchangeRateCache,
    get_exchange_rate_cache,
    summarize,
)
from ..services.billing_policy import AHEAD_BILLING_CUTOFF_DAY, should_generate_ahead_billing
from ..services.occurrences import add_months, month_key
from .dependencies import billing_errors_as_http, get_today

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _split_statuses(raw: Optional[list[str]]) -> list[str]:
    values: list[str] = []
    for entry in raw or []:
        values.extend(part.strip() for part in entry.split(",") if part.strip())
    return values


@router.get("/", response_model=schemas.ClassBillListResponse)
def list_bills(
    db: Session = Depends(get_db),
    rates: ExchangeRateCache = Depends(get_exchange_rate_cache),
    bill_status: Optional[list[str]] = Query(
        None, alias="status", description="Filter by status; repeat or comma-separate"
    ),
    month_year: Optional[str] = Query(None, description="Billing month formatted as YYYY-MM"),
    parent_id: Optional[str] = Query(None),
    student_id: Optional[str] = Query(None),
    convert: bool = Query(False, description="Add a total converted into the base currency"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> schemas.ClassBillListResponse:
    """Return bills with pagination, filters and a summary of the returned page."""

    service = BillAdminService(db)
    with billing_errors_as_http("list bills"):
        items, total = service.list_bills(
            statuses=_split_statuses(bill_status),
            month_year=month_year,
            parent_id=parent_id,
            student_id=student_id,
            skip=skip,
            limit=limit,
        )
        summary = summarize(items, converter=rates if convert else None)
    return schemas.ClassBillListResponse(
        items=items,
        total=total,
        limit=limit,
        skip=skip,
        summary=schemas.BillSummaryRead.model_validate(summary),
    )


@router.put("/{bill_id}/mark-paid", response_model=schemas.ClassBillRead)
def mark_bill_paid(
    bill_id: str,
    payload: Optional[schemas.BillStatusUpdate] = None,
    db: Session = Depends(get_db),
) -> schemas.ClassBillRead:
    with billing_errors_as_http("mark bill as paid"):
        return BillAdminService(db).mark_paid(bill_id, payload.note if payload else None)


@router.put("/{bill_id}/mark-unpaid", response_model=schemas.ClassBillRead)
def mark_bill_unpaid(
    bill_id: str,
    payload: Optional[schemas.BillStatusUpdate] = None,
    db: Session = Depends(get_db),
) -> schemas.ClassBillRead:
    with billing_errors_as_http("mark bill as unpaid"):
        return BillAdminService(db).mark_unpaid(bill_id, payload.note if payload else None)


@router.put("/{bill_id}/add-note", response_model=schemas.ClassBillRead)
def add_bill_note(
    bill_id: str,
    payload: schemas.BillNoteCreate,
    db: Session = Depends(get_db),
) -> schemas.ClassBillRead:
    with billing_errors_as_http("add a note to the bill"):
        return BillAdminService(db).add_note(bill_id, payload.note)


@router.post("/generate-for-month", response_model=schemas.BillRunSummaryRead)
def generate_bills_for_month(
    payload: schemas.MonthGenerationRequest, db: Session = Depends(get_db)
) -> schemas.BillRunSummaryRead:
    with billing_errors_as_http("generate bills"):
        summary = BillBatchService(db).auto_generate_bills_for_month(payload.month_year)
    return schemas.BillRunSummaryRead.model_validate(summary)


@router.post("/generate-next-month-bills", response_model=schemas.BillRunSummaryRead)
def generate_next_month_bills(
    db: Session = Depends(get_db), today: date = Depends(get_today)
) -> schemas.BillRunSummaryRead:
    """Manual trigger for next month's bills, allowed from the cutoff day onwards."""

    if not should_generate_ahead_billing(today):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Current day is {today.day}. Bills are only generated for next month "
                f"when day >= {AHEAD_BILLING_CUTOFF_DAY}."
            ),
        )
    next_month = add_months(month_key(today), 1)
    LOGGER.info("Manual next-month bill generation for %s", next_month)
    with billing_errors_as_http("generate next month bills"):
        summary = BillBatchService(db).auto_generate_bills_for_month(next_month)
    return schemas.BillRunSummaryRead.model_validate(summary)


@router.post("/handle-class-deletion", response_model=schemas.ClassDeletionResponse)
def handle_class_deletion(
    payload: schemas.ClassDeletionRequest, db: Session = Depends(get_db)
) -> schemas.ClassDeletionResponse:
    """Reconcile bills for a class that was removed outside this service."""

    with billing_errors_as_http("reconcile bills"):
        updated = BillGenerationService(db).handle_class_deletion(payload.class_id)
    return schemas.ClassDeletionResponse(class_id=payload.class_id, updated_bills=updated)


@router.post(
    "/students/{student_id}/bills",
    response_model=schemas.ClassBillRead,
    status_code=status.HTTP_200_OK,
)
def generate_student_bill(
    student_id: str, payload: schemas.StudentBillRequest, db: Session = Depends(get_db)
) -> schemas.ClassBillRead:
    with billing_errors_as_http("generate the student bill"):
        return BillGenerationService(db).generate_or_update_bill(
            student_id, payload.parent_id, payload.month_year
        )


@router.get("/parents/{parent_id}/bills", response_model=schemas.ParentBillsResponse)
def list_parent_bills(
    parent_id: str,
    month_year: Optional[str] = Query(None, description="Billing month formatted as YYYY-MM"),
    db: Session = Depends(get_db),
) -> schemas.ParentBillsResponse:
    with billing_errors_as_http("load parent bills"):
        bills = BillGenerationService(db).get_parent_bills(parent_id, month_year)
    return schemas.ParentBillsResponse(
        parent_id=parent_id,
        month_year=month_year,
        bills=bills,
        summary=schemas.BillSummaryRead.model_validate(summarize(bills)),
    )
