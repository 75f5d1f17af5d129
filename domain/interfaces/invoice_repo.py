from datetime import date
from typing_extensions import Protocol
from domain.entities import Invoice, InvoiceStatus
from typing import Optional


class InvoiceRepository(Protocol):
    async def find_latest(self, enrollment_id: str, before: Optional[date] = None) -> Optional[Invoice]:
        """
        Most recent invoice of an enrollment, newest invoice_date first.

        Args:
            enrollment_id: Enrollment whose history is read
            before: When given, only invoices dated strictly before this day
        """
        ...

    async def exists_for_date(self, enrollment_id: str, invoice_date: date) -> bool: ...
    async def get(self, invoice_id: str) -> Optional[Invoice]: ...
    async def save(self, invoice: Invoice) -> Invoice: ...
    async def update_status(self, invoice: Invoice, status: InvoiceStatus) -> Invoice: ...
    async def next_numbers(self) -> tuple[int, int]:
        """Next (invoice sequence, receipt sequence), each max + 1."""
        ...
