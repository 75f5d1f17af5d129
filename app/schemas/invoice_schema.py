from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from domain.entities import Invoice, InvoicePreview, InvoiceStatus


class InvoiceCreate(BaseModel):
    customer_id: str
    plan_id: str
    received_amount: Decimal = Field(..., gt=0)
    invoice_date: date
    manual_arrear_amount: Optional[Decimal] = Field(None, ge=0)
    manual_balance_amount: Optional[Decimal] = Field(None, ge=0)
    manual_due_number: Optional[int] = Field(None, ge=1)


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoicePreviewResponse(BaseModel):
    due_number: int
    due_amount: Decimal
    arrear_amount: Decimal
    pending_amount: Decimal
    received_amount: Decimal
    balance_amount: Decimal
    payment_month: str
    is_first_invoice: bool

    @classmethod
    def from_domain(cls, preview: InvoicePreview) -> "InvoicePreviewResponse":
        return cls(
            due_number=preview.due_number,
            due_amount=preview.due_amount,
            arrear_amount=preview.arrear_amount,
            pending_amount=preview.pending_amount,
            received_amount=preview.received_amount,
            balance_amount=preview.balance_amount,
            payment_month=preview.payment_month,
            is_first_invoice=preview.is_first_invoice,
        )


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: Optional[str] = None
    receipt_number: Optional[str] = None
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
    manual_arrear_amount: Optional[Decimal] = None
    manual_balance_amount: Optional[Decimal] = None
    status: InvoiceStatus
    created_at: datetime

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            receipt_number=invoice.receipt_number,
            enrollment_id=invoice.enrollment_id,
            customer_id=invoice.customer_id,
            plan_id=invoice.plan_id,
            invoice_date=invoice.invoice_date,
            due_number=invoice.due_number,
            payment_month=invoice.payment_month,
            due_amount=invoice.due_amount,
            arrear_amount=invoice.arrear_amount,
            pending_amount=invoice.pending_amount,
            received_amount=invoice.received_amount,
            balance_amount=invoice.balance_amount,
            manual_arrear_amount=invoice.manual_arrear_amount,
            manual_balance_amount=invoice.manual_balance_amount,
            status=invoice.status,
            created_at=invoice.created_at,
        )
