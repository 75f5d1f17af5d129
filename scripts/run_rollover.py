#!/usr/bin/env python3
"""
Monthly Arrear Rollover

Runs the arrear rollover for every active enrollment. Meant to be scheduled
daily; on days that are neither the rollover day nor a month end it exits
without touching the database unless --force is given.

Usage:
    python scripts/run_rollover.py
    python scripts/run_rollover.py --date 2024-04-21
    python scripts/run_rollover.py --date 2024-04-10 --force --json

Arguments:
    --date: As-of date (YYYY-MM-DD), defaults to today
    --force: Roll over even when the date does not qualify
    --json: Output raw JSON instead of formatted text
"""
import argparse
import asyncio
import json
import os
import signal
import sys
from datetime import date, datetime

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from dotenv import load_dotenv

load_dotenv()

from application.service.monthly_rollover import MonthlyRolloverJob, RolloverResult, is_rollover_day
from domain.config import get_billing_config
from infrastructure.db.database import AsyncSessionLocal, engine
from infrastructure.db.repositories.enrollment_repo_sqlalchemy import EnrollmentRepoSqlalchemy
from infrastructure.db.repositories.invoice_repo_sqlalchemy import InvoiceRepoSqlalchemy
from infrastructure.db.repositories.plan_repo_sqlalchemy import PlanRepoSqlalchemy
from infrastructure.locks.keyed_lock import KeyedLock
from infrastructure.logging.logging_adapter import LoggingAdapter
from infrastructure.metrics.metrics_adapter import MetricsAdapter


def format_result(result: RolloverResult) -> str:
    """Format a rollover result for human-readable output."""
    summary = result["summary"]
    lines = [
        "=" * 60,
        f"  ARREAR ROLLOVER {result['as_of_date']}",
        "=" * 60,
        f"  Total:    {summary['total']}",
        f"  Updated:  {summary['updated']}",
        f"  Skipped:  {summary['skipped']}",
        f"  Errors:   {summary['errors']}",
    ]
    if result["cancelled"]:
        lines.append("  Run was cancelled before every enrollment was processed")

    if result["updated"]:
        lines.append("")
        lines.append("  Updated")
        for entry in result["updated"]:
            lines.append(
                f"    {entry['enrollment_id']}: {entry['previous_arrear']} -> {entry['new_arrear']} ({entry['reason']})"
            )
    if result["errors"]:
        lines.append("")
        lines.append("  Errors")
        for entry in result["errors"]:
            lines.append(f"    {entry['enrollment_id']}: {entry['error']}")
    lines.append("=" * 60)
    return "\n".join(lines)


async def run(as_of_date: date, force: bool) -> RolloverResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, cancel_event.set)

    try:
        async with AsyncSessionLocal() as session:
            job = MonthlyRolloverJob(
                enrollment_repo=EnrollmentRepoSqlalchemy(session),
                invoice_repo=InvoiceRepoSqlalchemy(session),
                plan_repo=PlanRepoSqlalchemy(session),
                lock_port=KeyedLock(),
                metrics_port=MetricsAdapter(),
                logging_port=LoggingAdapter(),
            )
            return await job.run_for_all(as_of_date, force=force, cancel_event=cancel_event)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Roll unpaid invoice balances into enrollment arrears"
    )
    parser.add_argument(
        "--date",
        help="As-of date (YYYY-MM-DD), defaults to today"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even when the date is not a rollover day"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output raw JSON"
    )

    args = parser.parse_args()

    try:
        as_of_date = datetime.strptime(args.date, "%Y-%m-%d").date() if args.date else date.today()
    except ValueError:
        print(f"Error: Invalid date: {args.date}")
        sys.exit(1)

    rollover_day = get_billing_config().rollover_day
    if not args.force and not is_rollover_day(as_of_date, rollover_day):
        print(f"{as_of_date.isoformat()} is not a rollover day (day {rollover_day} or month end); nothing to do")
        return

    result = asyncio.run(run(as_of_date, args.force))

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    else:
        print(format_result(result))

    if result["summary"]["errors"]:
        sys.exit(2)


if __name__ == "__main__":
    main()
