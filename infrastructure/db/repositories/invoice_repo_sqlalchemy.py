import re
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from domain.entities import Invoice, InvoiceStatus
from domain.exceptions import ConflictError, NotFoundError
from domain.interfaces import InvoiceRepository
from infrastructure.db.models.invoices import InvoiceModel

_DIGITS = re.compile(r"(\d+)$")


def _sequence_of(value: Optional[str]) -> int:
    """Trailing number of a stored identifier, 0 when there is none."""
    match = _DIGITS.search(value or "")
    return int(match.group(1)) if match else 0


class InvoiceRepoSqlalchemy(InvoiceRepository):
    """SQLAlchemy implementation of InvoiceRepository."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_latest(self, enrollment_id: str, before: Optional[date] = None) -> Optional[Invoice]:
        stmt = select(InvoiceModel).where(InvoiceModel.enrollment_id == enrollment_id)
        if before is not None:
            stmt = stmt.where(InvoiceModel.invoice_date < before)
        stmt = stmt.order_by(InvoiceModel.invoice_date.desc(), InvoiceModel.created_at.desc()).limit(1)
        result = await self.db.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_domain() if model else None

    async def exists_for_date(self, enrollment_id: str, invoice_date: date) -> bool:
        stmt = select(InvoiceModel.id).where(
            InvoiceModel.enrollment_id == enrollment_id,
            InvoiceModel.invoice_date == invoice_date,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def get(self, invoice_id: str) -> Optional[Invoice]:
        model = await self.db.get(InvoiceModel, invoice_id)
        return model.to_domain() if model else None

    async def save(self, invoice: Invoice) -> Invoice:
        """
        Insert a new invoice.

        Raises:
            ConflictError: when the enrollment already has an invoice on that day
                or the generated numbers were taken by a concurrent writer
        """
        self.db.add(InvoiceModel.from_domain(invoice))
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                f"Invoice for enrollment {invoice.enrollment_id} on {invoice.invoice_date.isoformat()} conflicts with an existing record",
                details={"enrollment_id": invoice.enrollment_id, "invoice_date": invoice.invoice_date.isoformat()},
            ) from e
        return invoice

    async def update_status(self, invoice: Invoice, status: InvoiceStatus) -> Invoice:
        model = await self.db.get(InvoiceModel, invoice.id)
        if model is None:
            raise NotFoundError("Invoice", invoice.id)
        model.status = status.value
        await self.db.commit()
        return invoice.set_status(status)

    async def _highest(self, column) -> Optional[str]:
        # Numbers share one prefix and are zero padded, so the longest value sorts highest
        stmt = select(column).order_by(func.length(column).desc(), column.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def next_numbers(self) -> tuple[int, int]:
        return (
            _sequence_of(await self._highest(InvoiceModel.invoice_number)) + 1,
            _sequence_of(await self._highest(InvoiceModel.receipt_number)) + 1,
        )
