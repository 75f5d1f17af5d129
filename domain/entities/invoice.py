from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4


class InvoiceStatus(Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InvoicePreview:
    """Numbers shown before an invoice is saved; saving reuses them verbatim."""
    due_number: int
    due_amount: Decimal
    arrear_amount: Decimal
    pending_amount: Decimal
    received_amount: Decimal
    balance_amount: Decimal
    payment_month: str
    is_first_invoice: bool


@dataclass
class Invoice:
    id: str
    enrollment_id: str
    customer_id: str
    plan_id: str
    invoice_date: date
    due_number: int
    payment_month: str
    due_amount: Decimal
    arrear_amount: Decimal
    pending_amount: Decimal
    received_amount: Decimal
    balance_amount: Decimal
    created_at: datetime
    invoice_number: Optional[str] = None
    receipt_number: Optional[str] = None
    manual_arrear_amount: Optional[Decimal] = None
    manual_balance_amount: Optional[Decimal] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT

    @staticmethod
    def create(
        enrollment_id: str,
        customer_id: str,
        plan_id: str,
        invoice_date: date,
        preview: InvoicePreview,
        manual_arrear_amount: Optional[Decimal] = None,
        manual_balance_amount: Optional[Decimal] = None,
    ) -> 'Invoice':
        """Snapshot a preview into a new draft invoice.

        A manual balance replaces the computed one as given; the preview's
        other amounts are copied unchanged.
        """
        balance = manual_balance_amount if manual_balance_amount is not None else preview.balance_amount
        return Invoice(
            id=str(uuid4()),
            enrollment_id=enrollment_id,
            customer_id=customer_id,
            plan_id=plan_id,
            invoice_date=invoice_date,
            due_number=preview.due_number,
            payment_month=preview.payment_month,
            due_amount=preview.due_amount,
            arrear_amount=preview.arrear_amount,
            pending_amount=preview.pending_amount,
            received_amount=preview.received_amount,
            balance_amount=balance,
            created_at=datetime.now(),
            manual_arrear_amount=manual_arrear_amount,
            manual_balance_amount=manual_balance_amount,
        )

    def set_numbers(self, invoice_number: str, receipt_number: str) -> 'Invoice':
        self.invoice_number = invoice_number
        self.receipt_number = receipt_number
        return self

    def set_status(self, status: InvoiceStatus) -> 'Invoice':
        self.status = status
        return self
