"""Day-of-month rules deciding when bills are generated ahead of time."""

from __future__ import annotations

from datetime import date

from .occurrences import add_months, month_key, parse_month_year

AHEAD_BILLING_CUTOFF_DAY = 25
MONTH_AFTER_NEXT_LAST_DAY = 28
BILL_DUE_DAY = 25


def should_generate_ahead_billing(today: date) -> bool:
    """Return ``True`` once the month has reached the cutoff for next-month bills."""

    return today.day >= AHEAD_BILLING_CUTOFF_DAY


def should_cover_month_after_next(today: date) -> bool:
    """Days 25-28 exist in every month, so the month after next is covered there too."""

    return AHEAD_BILLING_CUTOFF_DAY <= today.day <= MONTH_AFTER_NEXT_LAST_DAY


def ahead_billing_months(today: date) -> list[str]:
    """Return the month keys the scheduled trigger should bill on ``today``."""

    if not should_generate_ahead_billing(today):
        return []
    current = month_key(today)
    months = [add_months(current, 1)]
    if should_cover_month_after_next(today):
        months.append(add_months(current, 2))
    return months


def due_date_for(month_year: str) -> date:
    year, month = parse_month_year(month_year)
    return date(year, month, BILL_DUE_DAY)
