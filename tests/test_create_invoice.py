import asyncio
from datetime import date
from decimal import Decimal
import pytest

from application.service.create_invoice import CreateInvoiceService
from application.service.invoice_preview import InvoicePreviewEngine
from domain.exceptions import ConflictError, NotFoundError, ValidationError
from domain.interfaces import MetricsPort, enrollment_lock_key
from infrastructure.locks.keyed_lock import KeyedLock


@pytest.fixture
def service(enrollment_repo, plan_repo, invoice_repo):
    return CreateInvoiceService(enrollment_repo, plan_repo, invoice_repo, lock_port=KeyedLock())


@pytest.mark.asyncio
async def test_create_matches_preview(service, enrollment_repo, plan_repo, invoice_repo, plan):
    engine = InvoicePreviewEngine(enrollment_repo, plan_repo, invoice_repo)
    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("600"))

    invoice = await service.execute("C1", plan.id, Decimal("600"), date(2024, 3, 15))

    assert invoice.due_number == preview.due_number
    assert invoice.due_amount == preview.due_amount
    assert invoice.arrear_amount == preview.arrear_amount
    assert invoice.pending_amount == preview.pending_amount
    assert invoice.balance_amount == preview.balance_amount == Decimal("400.00")
    assert invoice.payment_month == "March 2024"
    assert invoice.invoice_number == "INV000001"
    assert invoice.receipt_number == "0001"
    assert await invoice_repo.get(invoice.id) is invoice


@pytest.mark.asyncio
async def test_numbers_increase(service, plan):
    first = await service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15))
    second = await service.execute("C1", plan.id, Decimal("1200"), date(2024, 4, 10))
    assert first.invoice_number == "INV000001"
    assert second.invoice_number == "INV000002"
    assert second.receipt_number == "0002"


@pytest.mark.asyncio
async def test_duplicate_date_conflicts(service, plan, invoice_repo):
    await service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15))
    with pytest.raises(ConflictError):
        await service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15))
    assert len(invoice_repo.invoices) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicates_only_one_wins(service, plan, invoice_repo):
    results = await asyncio.gather(
        service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15)),
        service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15)),
        return_exceptions=True,
    )
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert len(invoice_repo.invoices) == 1


@pytest.mark.asyncio
async def test_manual_balance_used_verbatim(service, plan):
    invoice = await service.execute(
        "C1", plan.id, Decimal("600"), date(2024, 3, 15), manual_balance_amount=Decimal("123.45")
    )
    assert invoice.pending_amount == Decimal("1000.00")
    assert invoice.balance_amount == Decimal("123.45")
    assert invoice.manual_balance_amount == Decimal("123.45")


@pytest.mark.asyncio
async def test_manual_arrear_recorded_on_invoice_only(service, plan, enrollment):
    invoice = await service.execute(
        "C1", plan.id, Decimal("1000"), date(2024, 3, 15), manual_arrear_amount=Decimal("200")
    )
    assert invoice.arrear_amount == Decimal("200.00")
    assert invoice.manual_arrear_amount == Decimal("200.00")
    assert invoice.balance_amount == Decimal("200.00")
    assert enrollment.current_arrear is None


@pytest.mark.parametrize("received", [Decimal("0"), Decimal("-5")])
@pytest.mark.asyncio
async def test_received_must_be_positive(service, plan, invoice_repo, received):
    with pytest.raises(ValidationError):
        await service.execute("C1", plan.id, received, date(2024, 3, 15))
    assert invoice_repo.invoices == {}


@pytest.mark.asyncio
async def test_negative_manual_balance_rejected(service, plan, invoice_repo):
    with pytest.raises(ValidationError):
        await service.execute("C1", plan.id, Decimal("10"), date(2024, 3, 15), manual_balance_amount=Decimal("-1"))
    assert invoice_repo.invoices == {}


@pytest.mark.asyncio
async def test_unknown_enrollment(service):
    with pytest.raises(NotFoundError):
        await service.execute("C9", "P9", Decimal("10"), date(2024, 3, 15))


@pytest.mark.asyncio
async def test_created_metric_flags_first_invoice(enrollment_repo, plan_repo, invoice_repo, plan, mocker):
    metrics = mocker.Mock(spec=MetricsPort)
    service = CreateInvoiceService(enrollment_repo, plan_repo, invoice_repo, metrics_port=metrics)

    await service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15))
    await service.execute("C1", plan.id, Decimal("1200"), date(2024, 4, 10))

    assert [c.kwargs for c in metrics.increment_invoice_created.call_args_list] == [
        {"first_invoice": True},
        {"first_invoice": False},
    ]


@pytest.mark.asyncio
async def test_three_month_plan_walkthrough(service, enrollment_repo, plan_repo, invoice_repo, plan, enrollment):
    from application.service.monthly_rollover import MonthlyRolloverJob

    engine = service.preview_engine
    march = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("1000"))
    assert (march.due_number, march.due_amount, march.arrear_amount) == (1, Decimal("1000.00"), Decimal("0.00"))

    invoice = await service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15))
    assert invoice.balance_amount == Decimal("0.00")

    april = await engine.preview("C1", plan.id, date(2024, 4, 10), Decimal("0"))
    assert (april.due_number, april.due_amount, april.arrear_amount) == (2, Decimal("1200.00"), Decimal("0.00"))

    await MonthlyRolloverJob(enrollment_repo, invoice_repo).run_for_all(date(2024, 4, 21))
    assert await engine.ledger.arrear_for(enrollment, date(2024, 4, 21)) == Decimal("0.00")


@pytest.mark.asyncio
async def test_manual_due_number_bills_chosen_installment(service, plan):
    invoice = await service.execute("C1", plan.id, Decimal("1500"), date(2024, 3, 15), manual_due_number=3)
    assert invoice.due_number == 3
    assert invoice.due_amount == Decimal("1500.00")
    assert invoice.balance_amount == Decimal("0.00")


@pytest.mark.parametrize("due_number", [0, 4])
@pytest.mark.asyncio
async def test_manual_due_number_outside_plan_rejected(service, plan, invoice_repo, due_number):
    with pytest.raises(ValidationError) as exc:
        await service.execute("C1", plan.id, Decimal("10"), date(2024, 3, 15), manual_due_number=due_number)
    assert exc.value.details == {"field": "manual_due_number"}
    assert invoice_repo.invoices == {}


@pytest.mark.asyncio
async def test_creation_waits_for_enrollment_lock(enrollment_repo, plan_repo, invoice_repo, plan, enrollment):
    locks = KeyedLock()
    service = CreateInvoiceService(enrollment_repo, plan_repo, invoice_repo, lock_port=locks)

    async with locks.hold(enrollment_lock_key(enrollment.id)):
        task = asyncio.create_task(service.execute("C1", plan.id, Decimal("1000"), date(2024, 3, 15)))
        for _ in range(5):
            await asyncio.sleep(0)
        assert not task.done()
        assert invoice_repo.invoices == {}

    invoice = await task
    assert await invoice_repo.get(invoice.id) is invoice
