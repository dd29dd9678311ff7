from __future__ import annotations

from datetime import date

import pytest

from backend.app.services.billing_policy import (
    ahead_billing_months,
    due_date_for,
    should_cover_month_after_next,
    should_generate_ahead_billing,
)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2025, 11, 1), []),
        (date(2025, 11, 24), []),
        (date(2025, 11, 25), ["2025-12", "2026-01"]),
        (date(2025, 11, 28), ["2025-12", "2026-01"]),
        (date(2025, 11, 29), ["2025-12"]),
        (date(2025, 12, 31), ["2026-01"]),
        (date(2026, 2, 28), ["2026-03", "2026-04"]),
    ],
)
def test_ahead_billing_months_follow_day_of_month(today, expected):
    assert ahead_billing_months(today) == expected


def test_cutoff_is_day_25():
    assert not should_generate_ahead_billing(date(2025, 11, 24))
    assert should_generate_ahead_billing(date(2025, 11, 25))


def test_month_after_next_only_covered_on_days_present_in_every_month():
    assert should_cover_month_after_next(date(2025, 11, 28))
    assert not should_cover_month_after_next(date(2025, 11, 29))
    assert not should_cover_month_after_next(date(2025, 11, 24))


def test_due_date_is_the_25th_of_the_billed_month():
    assert due_date_for("2026-01") == date(2026, 1, 25)
