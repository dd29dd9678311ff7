"""SQLAlchemy models for monthly class bills."""

from __future__ import annotations

import enum
from typing import Iterable

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import GUID, new_identifier


class BillStatus(str, enum.Enum):
    """Bookkeeping state of a monthly bill."""

    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


BILL_STATUS_ENUM = Enum(
    BillStatus,
    name="class_bill_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class ClassBill(Base):
    """Monthly bill owed by a parent for one student's classes.

    ``(student_id, parent_id, month_year)`` is the natural key of a bill.
    """

    __tablename__ = "class_billing"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "parent_id", "month_year", name="class_billing_natural_key"
        ),
        CheckConstraint("amount >= 0", name="ck_class_billing_amount_non_negative"),
        CheckConstraint(
            "total_classes_count >= 0", name="ck_class_billing_count_non_negative"
        ),
    )

    id = Column(GUID(), primary_key=True, default=new_identifier)
    student_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    month_year = Column(String(7), nullable=False)
    total_classes_count = Column(Integer, nullable=False, default=0)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(BILL_STATUS_ENUM, nullable=False, default=BillStatus.UNPAID)
    billing_generated_date = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    student = relationship("User", foreign_keys=[student_id], lazy="joined")
    parent = relationship("User", foreign_keys=[parent_id])
    items = relationship(
        "ClassBillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="ClassBillItem.position",
        lazy="selectin",
    )

    @property
    def class_ids(self) -> list[str]:
        return [item.class_id for item in self.items]

    @class_ids.setter
    def class_ids(self, values: Iterable[str]) -> None:
        existing = {item.class_id: item for item in self.items}
        wanted = list(dict.fromkeys(str(value) for value in values))
        updated = []
        for position, class_id in enumerate(wanted):
            item = existing.get(class_id) or ClassBillItem(class_id=class_id)
            item.position = position
            updated.append(item)
        self.items = updated

    def append_note(self, text: str) -> None:
        """Append a line to the audit notes without touching earlier entries."""

        if not self.notes:
            self.notes = text
        else:
            self.notes = f"{self.notes}\n{text}"


class ClassBillItem(Base):
    """Class contributing occurrences to a bill."""

    __tablename__ = "class_billing_items"

    id = Column(GUID(), primary_key=True, default=new_identifier)
    bill_id = Column(
        GUID(), ForeignKey("class_billing.id", ondelete="CASCADE"), nullable=False
    )
    # Not a foreign key: bills keep referencing classes until reconciliation runs.
    class_id = Column(GUID(), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    bill = relationship("ClassBill", back_populates="items")


Index("class_billing_parent_month_idx", ClassBill.parent_id, ClassBill.month_year)
Index("class_billing_status_idx", ClassBill.status)
Index("class_billing_items_class_idx", ClassBillItem.class_id)
Index("class_billing_items_bill_idx", ClassBillItem.bill_id)
