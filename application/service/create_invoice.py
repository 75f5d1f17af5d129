import time
from contextlib import nullcontext
from datetime import date
from decimal import Decimal
from typing import Optional

from domain.config import get_numbering_config
from domain.entities import Invoice
from domain.exceptions import ConflictError, ValidationError
from domain.interfaces import EnrollmentRepository, InvoiceRepository, PlanRepository, LockPort, MetricsPort, LoggingPort, enrollment_lock_key
from domain.interfaces.logging_port import bind_or_noop
from domain.services.money import round_money
from application.service.invoice_preview import InvoicePreviewEngine


class CreateInvoiceService:
    def __init__(
        self,
        enrollment_repo: EnrollmentRepository,
        plan_repo: PlanRepository,
        invoice_repo: InvoiceRepository,
        lock_port: Optional[LockPort] = None,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
        preview_engine: Optional[InvoicePreviewEngine] = None,
    ):
        """
        Initialize the invoice creation service.

        Args:
            enrollment_repo: Repository for active enrollments (required)
            plan_repo: Repository for plan schedules (required)
            invoice_repo: Repository the invoice is saved to (required)
            lock_port: Advisory lock serialising creation per enrollment (optional)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
            preview_engine: Engine computing the amounts, built over the same repositories when omitted
        """
        self.enrollment_repo = enrollment_repo
        self.plan_repo = plan_repo
        self.invoice_repo = invoice_repo
        self.lock_port = lock_port
        self.metrics_port = metrics_port
        self.logging_port = logging_port
        self.preview_engine = preview_engine or InvoicePreviewEngine(
            enrollment_repo,
            plan_repo,
            invoice_repo,
            metrics_port=None,
            logging_port=logging_port,
        )

    async def execute(
        self,
        customer_id: str,
        plan_id: str,
        received_amount: Decimal,
        invoice_date: date,
        manual_arrear_amount: Optional[Decimal] = None,
        manual_balance_amount: Optional[Decimal] = None,
        manual_due_number: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> Invoice:
        """
        Persist an invoice using exactly the numbers `preview` gives for the same date.

        Args:
            customer_id: Customer being billed
            plan_id: Plan the customer is enrolled in
            received_amount: Payment received, must be positive
            invoice_date: As-of date for every calculation
            manual_arrear_amount: Arrear for this invoice only, used verbatim (optional)
            manual_balance_amount: Balance to record instead of the computed one (optional)
            manual_due_number: Installment to bill instead of the calculated one,
                between 1 and the plan duration (optional)
            request_id: ID of the request for tracing (optional)
        """
        start_time = time.time()
        log = bind_or_noop(
            self.logging_port,
            request_id=request_id or "unknown",
            customer_id=customer_id,
            plan_id=plan_id,
            step="invoice_creation",
        )

        if received_amount is None or Decimal(str(received_amount)) <= 0:
            raise ValidationError("Received amount must be positive", field="received_amount")
        if manual_balance_amount is not None and Decimal(str(manual_balance_amount)) < 0:
            raise ValidationError("Manual balance cannot be negative", field="manual_balance_amount")

        log.info("invoice_creation_started", invoice_date=invoice_date.isoformat(), received_amount=str(received_amount))

        try:
            enrollment = await self.preview_engine.ledger.get_active_enrollment(customer_id, plan_id)
            # Key shared with the monthly rollover
            lock = self.lock_port.hold(enrollment_lock_key(enrollment.id)) if self.lock_port else nullcontext()
            async with lock:
                if await self.invoice_repo.exists_for_date(enrollment.id, invoice_date):
                    raise ConflictError(
                        f"An invoice already exists for enrollment {enrollment.id} on {invoice_date.isoformat()}",
                        details={"enrollment_id": enrollment.id, "invoice_date": invoice_date.isoformat()},
                    )

                plan = await self.preview_engine.load_plan(enrollment)
                preview = await self.preview_engine.preview_for(
                    enrollment,
                    plan,
                    invoice_date,
                    received_amount,
                    manual_arrear=manual_arrear_amount,
                    due_number=manual_due_number,
                )

                invoice = Invoice.create(
                    enrollment_id=enrollment.id,
                    customer_id=customer_id,
                    plan_id=plan_id,
                    invoice_date=invoice_date,
                    preview=preview,
                    manual_arrear_amount=round_money(manual_arrear_amount) if manual_arrear_amount is not None else None,
                    manual_balance_amount=round_money(manual_balance_amount) if manual_balance_amount is not None else None,
                )
                invoice_seq, receipt_seq = await self.invoice_repo.next_numbers()
                numbering = get_numbering_config()
                invoice.set_numbers(
                    invoice_number=numbering.format_invoice_number(invoice_seq),
                    receipt_number=numbering.format_receipt_number(receipt_seq),
                )

                log.info("saving_invoice", step="db_persist", invoice_number=invoice.invoice_number)
                await self.invoice_repo.save(invoice)
        except Exception as e:
            log.error(
                "invoice_creation_failed",
                duration_ms=round((time.time() - start_time) * 1000, 2),
                error=str(e),
                exc_info=not isinstance(e, (ValidationError, ConflictError)),
            )
            raise

        if self.metrics_port:
            self.metrics_port.increment_invoice_created(first_invoice=preview.is_first_invoice)

        log.info(
            "invoice_created",
            duration_ms=round((time.time() - start_time) * 1000, 2),
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            due_number=invoice.due_number,
            arrear_amount=str(invoice.arrear_amount),
            balance_amount=str(invoice.balance_amount),
            manual_balance=manual_balance_amount is not None,
            manual_due_number=manual_due_number is not None,
        )
        return invoice
