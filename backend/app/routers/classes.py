"""Router exposing class scheduling operations."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import ClassService
from .dependencies import billing_errors_as_http, get_today

router = APIRouter()


@router.post("/", response_model=schemas.ClassRead, status_code=status.HTTP_201_CREATED)
def create_class(
    class_in: schemas.ClassCreate,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
) -> schemas.ClassRead:
    """Schedule a class and bill its enrolled students for the current month."""

    with billing_errors_as_http("create class"):
        return ClassService(db).create_class(class_in, today=today)


@router.get("/{class_id}", response_model=schemas.ClassRead)
def get_class(class_id: str, db: Session = Depends(get_db)) -> schemas.ClassRead:
    with billing_errors_as_http("load class"):
        return ClassService(db).get_class(class_id)


@router.delete("/{class_id}", response_model=schemas.ClassDeletionResponse)
def delete_class(class_id: str, db: Session = Depends(get_db)) -> schemas.ClassDeletionResponse:
    with billing_errors_as_http("delete class"):
        updated = ClassService(db).delete_class(class_id)
    return schemas.ClassDeletionResponse(class_id=class_id, updated_bills=updated)
