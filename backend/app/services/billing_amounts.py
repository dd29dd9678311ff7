"""Monetary helpers for class billing."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .billing_errors import InvalidInputError

CENT = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    """Convert numbers coming from the ORM or JSON payloads into ``Decimal``."""

    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(f"Invalid monetary value: {value!r}") from exc


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_amount(per_occurrence_price: object, occurrence_count: int) -> Decimal:
    """Return ``price * count`` rounded half-up to cents."""

    price = to_decimal(per_occurrence_price)
    if price < 0:
        raise InvalidInputError("Price per class cannot be negative")
    if occurrence_count < 0:
        raise InvalidInputError("Occurrence count cannot be negative")
    return quantize_amount(price * occurrence_count)
