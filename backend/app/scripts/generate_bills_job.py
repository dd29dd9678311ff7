"""Command line entry-point to generate monthly class bills on demand."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, timezone
from typing import Optional

from .. import database
from ..services.bill_batch import BillBatchService, BillRunSummary
from ..services.bill_scheduler import run_scheduled_bill_generation
from ..services.billing_errors import InvalidInputError
from ..services.occurrences import add_months, month_key

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {raw!r}, expected YYYY-MM-DD") from exc


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate or refresh the monthly bills of every enrolled student."
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--month", help="Billing month formatted as YYYY-MM.")
    target.add_argument(
        "--next-month",
        action="store_true",
        help="Bill the month after --today regardless of the day of the month.",
    )
    target.add_argument(
        "--scheduled",
        action="store_true",
        help="Apply the daily rule: nothing before day 25, next month(s) from day 25.",
    )
    parser.add_argument(
        "--today",
        type=_parse_date,
        default=None,
        help="Reference date (YYYY-MM-DD); defaults to the current UTC date.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _run_month(month_year: str) -> BillRunSummary:
    with database.session_scope() as session:
        return BillBatchService(session).auto_generate_bills_for_month(month_year)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)
    today = args.today or datetime.now(timezone.utc).date()

    try:
        if args.scheduled:
            summaries = run_scheduled_bill_generation(today)
        elif args.next_month:
            summaries = [_run_month(add_months(month_key(today), 1))]
        else:
            summaries = [_run_month(args.month)]
    except InvalidInputError as exc:
        LOGGER.error("%s", exc)
        return 2

    if not summaries:
        LOGGER.info("No months due for billing on %s", today.isoformat())
    for summary in summaries:
        print(json.dumps(summary.to_dict(), ensure_ascii=False))

    return 1 if any(summary.error_count for summary in summaries) else 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
