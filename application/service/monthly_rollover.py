"""
Monthly Rollover Job

Advances the arrear of every active enrollment to the unpaid balance of its
latest invoice. Runs once per qualifying day; each enrollment is processed on
its own, so one failure never aborts the batch.
"""
import asyncio
import time
from contextlib import nullcontext
from datetime import date, datetime
from typing import Any, Optional, TypedDict

from domain.entities import Enrollment
from domain.exceptions import NotFoundError
from domain.interfaces import EnrollmentRepository, InvoiceRepository, PlanRepository, LockPort, MetricsPort, LoggingPort, enrollment_lock_key
from domain.interfaces.logging_port import bind_or_noop
from domain.services.arrear import is_last_day_of_month, qualifies_for_rollover
from domain.services.money import round_money
from application.service.arrear_ledger import ArrearLedger


class RolloverSummary(TypedDict):
    total: int
    updated: int
    skipped: int
    errors: int


class RolloverResult(TypedDict):
    as_of_date: str
    updated: list[dict[str, Any]]
    skipped: list[dict[str, Any]]
    errors: list[dict[str, Any]]
    cancelled: bool
    summary: RolloverSummary


def is_rollover_day(as_of_date: date, rollover_day: int) -> bool:
    """True on the rollover day or the last day of the month."""
    return as_of_date.day == rollover_day or is_last_day_of_month(as_of_date)


class MonthlyRolloverJob:
    def __init__(
        self,
        enrollment_repo: EnrollmentRepository,
        invoice_repo: InvoiceRepository,
        plan_repo: Optional[PlanRepository] = None,
        lock_port: Optional[LockPort] = None,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        ledger: Optional[ArrearLedger] = None,
        rollover_day: Optional[int] = None,
    ):
        """
        Initialize the rollover job.

        Args:
            enrollment_repo: Repository listing active enrollments (required)
            invoice_repo: Repository for the latest invoice of each enrollment (required)
            plan_repo: When given, enrollments whose plan is missing are reported as errors
            lock_port: Per-enrollment advisory lock (optional)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
            ledger: Arrear ledger, built over the same repositories when omitted
            rollover_day: Day of month for due 2+ rollovers
        """
        self.enrollment_repo = enrollment_repo
        self.invoice_repo = invoice_repo
        self.plan_repo = plan_repo
        self.lock_port = lock_port
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.rollover_day = rollover_day
        self.ledger = ledger or ArrearLedger(enrollment_repo, invoice_repo, logging_port=logging_port, rollover_day=rollover_day)

    async def run_for_all(
        self,
        as_of_date: date,
        force: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        now: Optional[datetime] = None,
    ) -> RolloverResult:
        """
        Roll every active enrollment over for `as_of_date`.

        Args:
            as_of_date: Day the rollover is run for
            force: Skip the day-qualification check (manual and test runs)
            cancel_event: When set, remaining enrollments are left untouched
            now: Timestamp stored with each new arrear (defaults to the clock)
        """
        start_time = time.time()
        log = bind_or_noop(self.logging_port, as_of_date=as_of_date.isoformat(), step="arrear_rollover")
        result = RolloverResult(
            as_of_date=as_of_date.isoformat(),
            updated=[],
            skipped=[],
            errors=[],
            cancelled=False,
            summary=RolloverSummary(total=0, updated=0, skipped=0, errors=0),
        )

        enrollments = await self.enrollment_repo.list_active()
        log.info("arrear_rollover_started", enrollment_count=len(enrollments), force=force)

        for enrollment in enrollments:
            if cancel_event is not None and cancel_event.is_set():
                result["cancelled"] = True
                log.warning("arrear_rollover_cancelled", remaining=len(enrollments) - result["summary"]["total"])
                break
            result["summary"]["total"] += 1

            lock = self.lock_port.hold(enrollment_lock_key(enrollment.id)) if self.lock_port else nullcontext()
            try:
                async with lock:
                    outcome, entry = await self._process(enrollment, as_of_date, force, now)
            except Exception as e:
                outcome = "errors"
                entry = {
                    "enrollment_id": enrollment.id,
                    "customer_id": enrollment.customer_id,
                    "plan_id": enrollment.plan_id,
                    "error": str(e),
                }
                log.error("arrear_rollover_enrollment_failed", enrollment_id=enrollment.id, error=str(e), exc_info=True)

            result[outcome].append(entry)
            if self.metrics_port:
                self.metrics_port.increment_rollover(outcome="error" if outcome == "errors" else outcome)

        result["summary"]["updated"] = len(result["updated"])
        result["summary"]["skipped"] = len(result["skipped"])
        result["summary"]["errors"] = len(result["errors"])

        elapsed = time.time() - start_time
        if self.metrics_port:
            self.metrics_port.observe_rollover_duration(elapsed)
        log.info(
            "arrear_rollover_completed",
            duration_ms=round(elapsed * 1000, 2),
            cancelled=result["cancelled"],
            **result["summary"],
        )
        return result

    async def _process(self, listed: Enrollment, as_of_date: date, force: bool, now: Optional[datetime]) -> tuple[str, dict[str, Any]]:
        # Re-read under the lock so a concurrent manual edit is seen
        enrollment = await self.enrollment_repo.get(listed.id) or listed
        base = {
            "enrollment_id": enrollment.id,
            "customer_id": enrollment.customer_id,
            "plan_id": enrollment.plan_id,
        }

        if self.plan_repo is not None and await self.plan_repo.find_by_id(enrollment.plan_id) is None:
            raise NotFoundError("Plan", enrollment.plan_id)

        latest = await self.invoice_repo.find_latest(enrollment.id)
        if latest is None:
            return "skipped", {**base, "due_number": None, "reason": "No previous invoice"}

        if enrollment.has_manual_override:
            return "skipped", {**base, "due_number": latest.due_number, "reason": "Manual arrear override active"}

        qualification = qualifies_for_rollover(
            latest.due_number,
            as_of_date,
            enrollment.start_date,
            rollover_day=self.rollover_day,
        )
        if not qualification["qualifies"] and not force:
            return "skipped", {**base, "due_number": latest.due_number, "reason": qualification["reason"]}

        previous_arrear = enrollment.current_arrear
        if previous_arrear is None:
            previous_arrear = latest.arrear_amount
        previous_arrear = round_money(previous_arrear)
        new_arrear = await self.ledger.apply_monthly_rollover(enrollment, latest, now=now)

        return "updated", {
            **base,
            "due_number": latest.due_number,
            "last_invoice_date": latest.invoice_date.isoformat(),
            "previous_balance": str(round_money(latest.balance_amount)),
            "previous_arrear": str(previous_arrear),
            "new_arrear": str(new_arrear),
            "change": str(new_arrear - previous_arrear),
            "reason": qualification["reason"] if qualification["qualifies"] else "Forced update",
        }
