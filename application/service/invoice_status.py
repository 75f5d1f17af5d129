from typing import Optional
from domain.entities import Invoice, InvoiceStatus
from domain.exceptions import NotFoundError, ValidationError
from domain.interfaces import InvoiceRepository

# Amounts are frozen at creation; only the delivery/payment status moves
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}


class InvoiceStatusService:
    def __init__(self, invoice_repo: InvoiceRepository):
        self.invoice_repo = invoice_repo

    async def execute(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        """Move an invoice to `status`; repeating the current status is a no-op."""
        invoice: Optional[Invoice] = await self.invoice_repo.get(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        if invoice.status == status:
            return invoice
        if status not in ALLOWED_TRANSITIONS[invoice.status]:
            raise ValidationError(
                f"Cannot move invoice from {invoice.status.value} to {status.value}",
                field="status",
            )
        return await self.invoice_repo.update_status(invoice, status)
