from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from domain.entities import DerivedArrear, Enrollment, Invoice, ManualArrear, CarriedArrear
from domain.exceptions import NotFoundError, ValidationError
from domain.interfaces import EnrollmentRepository, InvoiceRepository, MetricsPort, LoggingPort
from domain.interfaces.logging_port import bind_or_noop
from domain.services.arrear import ArrearResolution, resolve_arrear, rollover_arrear
from domain.services.money import round_money


class ArrearLedger:
    def __init__(
        self,
        enrollment_repo: EnrollmentRepository,
        invoice_repo: InvoiceRepository,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        rollover_day: Optional[int] = None,
    ):
        """
        Initialize the arrear ledger.

        Args:
            enrollment_repo: Repository holding the stored arrear of each enrollment
            invoice_repo: Repository for reading previous invoices
            metrics_port: Metrics port for override counters (optional)
            logging_port: Logging port for structured logging (optional)
            rollover_day: Day of month on which arrear snaps to the previous balance
        """
        self.enrollment_repo = enrollment_repo
        self.invoice_repo = invoice_repo
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.rollover_day = rollover_day

    async def get_active_enrollment(self, customer_id: str, plan_id: str) -> Enrollment:
        enrollment = await self.enrollment_repo.find_active(customer_id, plan_id)
        if enrollment is None:
            raise NotFoundError("Active enrollment", f"{customer_id}/{plan_id}")
        return enrollment

    async def previous_invoice(self, enrollment: Enrollment, as_of_date: date) -> Optional[Invoice]:
        """Most recent invoice dated strictly before `as_of_date`."""
        return await self.invoice_repo.find_latest(enrollment.id, before=as_of_date)

    def resolve(
        self,
        enrollment: Enrollment,
        as_of_date: date,
        previous_invoice: Optional[Invoice],
        manual_arrear: Optional[Decimal] = None,
    ) -> ArrearResolution:
        return resolve_arrear(
            enrollment,
            previous_invoice,
            as_of_date,
            manual_arrear=manual_arrear,
            rollover_day=self.rollover_day,
        )

    async def arrear_for(self, enrollment: Enrollment, as_of_date: date, manual_arrear: Optional[Decimal] = None) -> Decimal:
        previous = None
        # The history only matters once the stored figure and the caller's figure are absent
        if manual_arrear is None and isinstance(enrollment.arrear_source, DerivedArrear):
            previous = await self.previous_invoice(enrollment, as_of_date)
        return self.resolve(enrollment, as_of_date, previous, manual_arrear)["amount"]

    async def apply_monthly_rollover(self, enrollment: Enrollment, previous_invoice: Invoice, now: Optional[datetime] = None) -> Decimal:
        """Carry the previous invoice's unpaid balance forward as the new arrear."""
        new_arrear = rollover_arrear(previous_invoice)
        enrollment.set_arrear_source(CarriedArrear(amount=new_arrear, set_at=now or datetime.now()))
        await self.enrollment_repo.save_arrear_source(enrollment)
        return new_arrear

    async def clear(self, enrollment: Enrollment) -> None:
        """Zero the stored arrear and hand the figure back to derivation."""
        enrollment.set_arrear_source(DerivedArrear())
        await self.enrollment_repo.save_arrear_source(enrollment)
        self._record("clear", enrollment)

    async def set_manual(self, enrollment: Enrollment, amount: Decimal, now: Optional[datetime] = None) -> None:
        if amount is None or Decimal(str(amount)) < 0:
            raise ValidationError("Manual arrear must be zero or positive", field="amount")
        source = ManualArrear(amount=round_money(amount), set_at=now or datetime.now())
        enrollment.set_arrear_source(source)
        await self.enrollment_repo.save_arrear_source(enrollment)
        self._record("manual", enrollment, amount=str(source.amount))

    async def clear_for(self, customer_id: str, plan_id: str) -> Enrollment:
        enrollment = await self.get_active_enrollment(customer_id, plan_id)
        await self.clear(enrollment)
        return enrollment

    async def set_manual_for(self, customer_id: str, plan_id: str, amount: Decimal, now: Optional[datetime] = None) -> Enrollment:
        enrollment = await self.get_active_enrollment(customer_id, plan_id)
        await self.set_manual(enrollment, amount, now=now)
        return enrollment

    async def waive(self, enrollment_ids: Optional[list[str]] = None, clear_all: bool = False, now: Optional[datetime] = None) -> int:
        """
        Force the arrear of many enrollments to a manual zero.

        Args:
            enrollment_ids: Enrollments to waive
            clear_all: Waive every active enrollment instead

        Returns:
            Number of enrollments changed
        """
        if clear_all:
            targets = await self.enrollment_repo.list_active()
        elif enrollment_ids:
            targets = []
            for enrollment_id in enrollment_ids:
                enrollment = await self.enrollment_repo.get(enrollment_id)
                if enrollment is None:
                    raise NotFoundError("Enrollment", enrollment_id)
                targets.append(enrollment)
        else:
            raise ValidationError("Provide enrollment_ids or clear_all", field="enrollment_ids")

        set_at = now or datetime.now()
        for enrollment in targets:
            enrollment.set_arrear_source(ManualArrear(amount=round_money(0), set_at=set_at))
            await self.enrollment_repo.save_arrear_source(enrollment)
            self._record("waive", enrollment)
        return len(targets)

    def _record(self, action: str, enrollment: Enrollment, **kwargs) -> None:
        if self.metrics_port:
            self.metrics_port.increment_arrear_override(action=action)
        log = bind_or_noop(
            self.logging_port,
            customer_id=enrollment.customer_id,
            plan_id=enrollment.plan_id,
            enrollment_id=enrollment.id,
            step="arrear_override",
        )
        log.info("arrear_override_applied", action=action, **kwargs)
