import time
from datetime import date
from decimal import Decimal
from typing import Optional

from domain.entities import Enrollment, InvoicePreview, Plan
from domain.exceptions import NotFoundError, ValidationError
from domain.interfaces import EnrollmentRepository, InvoiceRepository, PlanRepository, MetricsPort, LoggingPort
from domain.interfaces.logging_port import bind_or_noop
from domain.services import DueNumberCalculator, ScheduleResolver
from domain.services.money import ZERO, floor_at_zero, round_money
from application.service.arrear_ledger import ArrearLedger


class InvoicePreviewEngine:
    def __init__(
        self,
        enrollment_repo: EnrollmentRepository,
        plan_repo: PlanRepository,
        invoice_repo: InvoiceRepository,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        due_calculator: Optional[DueNumberCalculator] = None,
        schedule_resolver: Optional[ScheduleResolver] = None,
        ledger: Optional[ArrearLedger] = None,
    ):
        """
        Initialize the preview engine.

        Args:
            enrollment_repo: Repository for active enrollments (required)
            plan_repo: Repository for plan schedules (required)
            invoice_repo: Repository for previous invoices (required)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
            due_calculator: Installment calculator, configured from env when omitted
            schedule_resolver: Schedule lookup, default instance when omitted
            ledger: Arrear ledger, built over the same repositories when omitted
        """
        self.enrollment_repo = enrollment_repo
        self.plan_repo = plan_repo
        self.invoice_repo = invoice_repo
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.due_calculator = due_calculator or DueNumberCalculator()
        self.schedule_resolver = schedule_resolver or ScheduleResolver()
        self.ledger = ledger or ArrearLedger(enrollment_repo, invoice_repo, metrics_port, logging_port)

    async def preview(
        self,
        customer_id: str,
        plan_id: str,
        as_of_date: date,
        proposed_received_amount: Decimal = ZERO,
        manual_arrear: Optional[Decimal] = None,
    ) -> InvoicePreview:
        """
        Quote the invoice that would be created on `as_of_date`. Nothing is persisted.

        Args:
            customer_id: Customer being billed
            plan_id: Plan the customer is enrolled in
            as_of_date: Day all calculations are made for
            proposed_received_amount: Payment the customer is handing over
            manual_arrear: Arrear to use for this invoice only (optional)

        Raises:
            NotFoundError: No active enrollment, or its plan is missing
            ConfigurationError: The plan has no schedule
            ValidationError: Negative amounts, or a date before the enrollment starts
        """
        enrollment = await self.ledger.get_active_enrollment(customer_id, plan_id)
        plan = await self.load_plan(enrollment)
        return await self.preview_for(enrollment, plan, as_of_date, proposed_received_amount, manual_arrear)

    async def load_plan(self, enrollment: Enrollment) -> Plan:
        plan = await self.plan_repo.find_by_id(enrollment.plan_id)
        if plan is None:
            raise NotFoundError("Plan", enrollment.plan_id)
        return plan

    async def preview_for(
        self,
        enrollment: Enrollment,
        plan: Plan,
        as_of_date: date,
        received_amount: Decimal = ZERO,
        manual_arrear: Optional[Decimal] = None,
        due_number: Optional[int] = None,
    ) -> InvoicePreview:
        """Quote for a loaded enrollment and plan. `due_number` replaces the calculated installment."""
        start_time = time.time()
        log = bind_or_noop(
            self.logging_port,
            customer_id=enrollment.customer_id,
            plan_id=enrollment.plan_id,
            step="invoice_preview",
        )

        received = round_money(received_amount if received_amount is not None else ZERO)
        if received < 0:
            raise ValidationError("Received amount cannot be negative", field="received_amount")
        if manual_arrear is not None and Decimal(str(manual_arrear)) < 0:
            raise ValidationError("Manual arrear cannot be negative", field="manual_arrear_amount")
        if as_of_date < enrollment.start_date:
            raise ValidationError(
                f"Invoice date {as_of_date.isoformat()} is before enrollment start {enrollment.start_date.isoformat()}",
                field="as_of_date",
            )

        if due_number is None:
            due_number = self.due_calculator.current_installment(enrollment, as_of_date, plan.duration)
        elif not 1 <= due_number <= plan.duration:
            raise ValidationError(
                f"Invalid due number {due_number}: plan has only {plan.duration} installments",
                field="manual_due_number",
            )
        due_amount = self.schedule_resolver.amount_for(plan, due_number)

        previous = await self.ledger.previous_invoice(enrollment, as_of_date)
        is_first_invoice = previous is None and await self.invoice_repo.find_latest(enrollment.id) is None

        resolution = self.ledger.resolve(enrollment, as_of_date, previous, manual_arrear)
        arrear_amount = resolution["amount"]
        if is_first_invoice and resolution["source"] != "invoice_manual":
            # No debt can predate the first bill
            arrear_amount = ZERO

        pending_amount = round_money(due_amount + arrear_amount)
        balance_amount = floor_at_zero(pending_amount - received)

        if received > pending_amount:
            log.warning(
                "overpayment_not_carried",
                pending_amount=str(pending_amount),
                received_amount=str(received),
                excess_amount=str(received - pending_amount),
            )

        preview = InvoicePreview(
            due_number=due_number,
            due_amount=due_amount,
            arrear_amount=arrear_amount,
            pending_amount=pending_amount,
            received_amount=received,
            balance_amount=balance_amount,
            payment_month=self.due_calculator.payment_month(as_of_date),
            is_first_invoice=is_first_invoice,
        )

        if self.metrics_port:
            self.metrics_port.increment_invoice_preview()

        log.info(
            "invoice_preview_computed",
            as_of_date=as_of_date.isoformat(),
            due_number=due_number,
            due_amount=str(due_amount),
            arrear_amount=str(arrear_amount),
            arrear_source=resolution["source"],
            balance_amount=str(balance_amount),
            first_invoice=is_first_invoice,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return preview
