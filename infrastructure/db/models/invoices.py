from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped
from domain.entities import Invoice, InvoiceStatus
from infrastructure.db.models.base import Base

ENROLLMENT_DATE_CONSTRAINT = "uq_chit_invoice_enrollment_date"


class InvoiceModel(Base):
    __tablename__ = "chit_invoice"
    __table_args__ = (
        # At most one billing event per enrollment and day
        UniqueConstraint("enrollment_id", "invoice_date", name=ENROLLMENT_DATE_CONSTRAINT),
    )

    id: Mapped[str] = Column(String(36), primary_key=True)
    invoice_number: Mapped[str] = Column(String, nullable=False, unique=True)
    receipt_number: Mapped[str] = Column(String, nullable=False, unique=True)
    enrollment_id: Mapped[str] = Column(String(36), ForeignKey("chit_enrollment.id"), nullable=False, index=True)
    customer_id: Mapped[str] = Column(String, nullable=False)
    plan_id: Mapped[str] = Column(String(36), nullable=False)
    invoice_date: Mapped[date] = Column(Date, nullable=False)
    due_number: Mapped[int] = Column(Integer, nullable=False)
    payment_month: Mapped[str] = Column(String, nullable=False)
    due_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False)
    arrear_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    pending_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False)
    received_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False)
    balance_amount: Mapped[Decimal] = Column(Numeric(12, 2), nullable=False, default=0)
    manual_arrear_amount: Mapped[Optional[Decimal]] = Column(Numeric(12, 2), nullable=True)
    manual_balance_amount: Mapped[Optional[Decimal]] = Column(Numeric(12, 2), nullable=True)
    status: Mapped[str] = Column(String, nullable=False, default=InvoiceStatus.DRAFT.value)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False)

    def to_domain(self) -> Invoice:
        """Convert database model to domain entity."""
        return Invoice(
            id=self.id,
            enrollment_id=self.enrollment_id,
            customer_id=self.customer_id,
            plan_id=self.plan_id,
            invoice_date=self.invoice_date,
            due_number=self.due_number,
            payment_month=self.payment_month,
            due_amount=Decimal(self.due_amount),
            arrear_amount=Decimal(self.arrear_amount),
            pending_amount=Decimal(self.pending_amount),
            received_amount=Decimal(self.received_amount),
            balance_amount=Decimal(self.balance_amount),
            created_at=self.created_at,
            invoice_number=self.invoice_number,
            receipt_number=self.receipt_number,
            manual_arrear_amount=Decimal(self.manual_arrear_amount) if self.manual_arrear_amount is not None else None,
            manual_balance_amount=Decimal(self.manual_balance_amount) if self.manual_balance_amount is not None else None,
            status=InvoiceStatus(self.status),
        )

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceModel":
        """Convert domain Invoice entity to database model."""
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
            status=invoice.status.value,
            created_at=invoice.created_at,
        )
