from datetime import date
import pytest

from conftest import make_invoice
from application.service.invoice_status import InvoiceStatusService
from domain.entities import InvoiceStatus
from domain.exceptions import NotFoundError, ValidationError


@pytest.fixture
async def stored_invoice(enrollment, invoice_repo):
    return await invoice_repo.save(make_invoice(enrollment, date(2024, 3, 15)))


@pytest.mark.asyncio
async def test_status_changes_nothing_else(invoice_repo, stored_invoice):
    balance_before = stored_invoice.balance_amount
    updated = await InvoiceStatusService(invoice_repo).execute(stored_invoice.id, InvoiceStatus.SENT)
    assert updated.status == InvoiceStatus.SENT
    assert updated.balance_amount == balance_before


@pytest.mark.asyncio
async def test_draft_to_paid(invoice_repo, stored_invoice):
    updated = await InvoiceStatusService(invoice_repo).execute(stored_invoice.id, InvoiceStatus.PAID)
    assert updated.status == InvoiceStatus.PAID


@pytest.mark.parametrize("terminal", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
@pytest.mark.asyncio
async def test_terminal_statuses_are_final(invoice_repo, stored_invoice, terminal):
    service = InvoiceStatusService(invoice_repo)
    await service.execute(stored_invoice.id, terminal)
    with pytest.raises(ValidationError):
        await service.execute(stored_invoice.id, InvoiceStatus.SENT)


@pytest.mark.asyncio
async def test_same_status_is_noop(invoice_repo, stored_invoice, mocker):
    spy = mocker.spy(invoice_repo, "update_status")
    updated = await InvoiceStatusService(invoice_repo).execute(stored_invoice.id, InvoiceStatus.DRAFT)
    assert updated.status == InvoiceStatus.DRAFT
    spy.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_invoice(invoice_repo):
    with pytest.raises(NotFoundError):
        await InvoiceStatusService(invoice_repo).execute("missing", InvoiceStatus.SENT)
