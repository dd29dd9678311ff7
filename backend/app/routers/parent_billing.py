"""Router exposing a parent's own bills."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import BillGenerationService, summarize
from ..services.occurrences import month_key
from .dependencies import billing_errors_as_http, get_today

router = APIRouter()


@router.get("/{parent_id}/current-month", response_model=schemas.ParentBillsResponse)
def get_current_month_bills(
    parent_id: str,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
) -> schemas.ParentBillsResponse:
    with billing_errors_as_http("load current month bills"):
        bills = BillGenerationService(db).get_parent_current_month_bills(parent_id, today=today)
    return schemas.ParentBillsResponse(
        parent_id=parent_id,
        month_year=month_key(today),
        bills=bills,
        summary=schemas.BillSummaryRead.model_validate(summarize(bills)),
    )


@router.get("/{parent_id}/bills", response_model=schemas.ParentBillsResponse)
def get_bills(
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
