"""Calendar helpers that expand class schedules into monthly occurrences.

Everything in this module is pure: no database access and no clock reads, so
the same schedule and month always produce the same dates.
"""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ..models import WEEKDAY_NAMES, ScheduleType
from .billing_errors import InvalidMonthFormatError

MONTH_YEAR_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})")


def parse_month_year(month_year: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` key or raise ``InvalidMonthFormatError``."""

    if not isinstance(month_year, str):
        raise InvalidMonthFormatError(month_year)
    match = MONTH_YEAR_PATTERN.fullmatch(month_year)
    if not match:
        raise InvalidMonthFormatError(month_year)
    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or month < 1 or month > 12:
        raise InvalidMonthFormatError(month_year)
    return year, month


def month_bounds(month_year: str) -> tuple[date, date]:
    """Return the first and last calendar day of the month."""

    year, month = parse_month_year(month_year)
    _, last_day = monthrange(year, month)
    return date(year, month, 1), date(year, month, last_day)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def add_months(month_year: str, months: int) -> str:
    year, month = parse_month_year(month_year)
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def _as_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None


def _normalize_days(days: Optional[Iterable[str]]) -> frozenset[str]:
    if not days:
        return frozenset()
    return frozenset(str(day).strip().lower() for day in days if day)


@dataclass(frozen=True)
class ClassSchedule:
    """Schedule definition of a class as seen by the billing engine."""

    schedule_type: ScheduleType
    class_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    recurring_days: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        schedule_type: ScheduleType | str,
        *,
        class_date: object = None,
        start_date: object = None,
        end_date: object = None,
        recurring_days: Optional[Iterable[str]] = None,
    ) -> "ClassSchedule":
        return cls(
            schedule_type=ScheduleType(schedule_type),
            class_date=_as_date(class_date),
            start_date=_as_date(start_date),
            end_date=_as_date(end_date),
            recurring_days=_normalize_days(recurring_days),
        )

    @classmethod
    def from_class(cls, tutoring_class) -> "ClassSchedule":
        """Build a schedule from a ``TutoringClass`` row or any object with the same fields."""

        return cls.build(
            tutoring_class.schedule_type,
            class_date=tutoring_class.class_date,
            start_date=tutoring_class.start_date,
            end_date=tutoring_class.end_date,
            recurring_days=tutoring_class.recurring_days,
        )


def occurrences_between(schedule: ClassSchedule, start: date, end: date) -> list[date]:
    """Return the class dates falling inside the inclusive ``[start, end]`` window."""

    if start > end:
        return []

    if schedule.schedule_type == ScheduleType.ONE_TIME:
        if schedule.class_date is not None and start <= schedule.class_date <= end:
            return [schedule.class_date]
        return []

    if not schedule.recurring_days:
        return []
    if schedule.start_date is None or schedule.end_date is None:
        return []

    first = max(start, schedule.start_date)
    last = min(end, schedule.end_date)
    dates: list[date] = []
    current = first
    while current <= last:
        if WEEKDAY_NAMES[current.weekday()] in schedule.recurring_days:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def occurrences(schedule: ClassSchedule, month_year: str) -> list[date]:
    """Return the dates on which the class takes place during ``month_year``."""

    month_start, month_end = month_bounds(month_year)
    return occurrences_between(schedule, month_start, month_end)


def count_occurrences(schedule: ClassSchedule, month_year: str) -> int:
    return len(occurrences(schedule, month_year))
