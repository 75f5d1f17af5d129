from datetime import date, datetime
from decimal import Decimal
import pytest

from conftest import make_invoice
from application.service.invoice_preview import InvoicePreviewEngine
from domain.entities import ManualArrear, Plan
from domain.exceptions import ConfigurationError, NotFoundError, ValidationError
from domain.interfaces import LoggingPort, MetricsPort


@pytest.fixture
def engine(enrollment_repo, plan_repo, invoice_repo):
    return InvoicePreviewEngine(enrollment_repo, plan_repo, invoice_repo)


@pytest.mark.asyncio
async def test_first_invoice_preview(engine, plan):
    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("1000"))

    assert preview.due_number == 1
    assert preview.due_amount == Decimal("1000.00")
    assert preview.arrear_amount == Decimal("0.00")
    assert preview.pending_amount == Decimal("1000.00")
    assert preview.balance_amount == Decimal("0.00")
    assert preview.payment_month == "March 2024"
    assert preview.is_first_invoice is True


@pytest.mark.asyncio
async def test_first_invoice_ignores_stored_arrear(engine, plan, enrollment):
    enrollment.set_arrear_source(ManualArrear(amount=Decimal("900"), set_at=datetime(2024, 3, 1)))
    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("0"))
    assert preview.arrear_amount == Decimal("0.00")
    assert preview.pending_amount == Decimal("1000.00")


@pytest.mark.asyncio
async def test_first_invoice_honours_per_invoice_manual_arrear(engine, plan):
    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("0"), manual_arrear=Decimal("150"))
    assert preview.arrear_amount == Decimal("150.00")
    assert preview.pending_amount == Decimal("1150.00")


@pytest.mark.asyncio
async def test_second_month_uses_next_installment(engine, plan, enrollment, invoice_repo):
    await invoice_repo.save(make_invoice(enrollment, date(2024, 3, 15)))
    preview = await engine.preview("C1", plan.id, date(2024, 4, 10), Decimal("0"))

    assert preview.due_number == 2
    assert preview.due_amount == Decimal("1200.00")
    assert preview.arrear_amount == Decimal("0.00")
    assert preview.is_first_invoice is False


@pytest.mark.asyncio
async def test_backdated_preview_before_existing_invoice_is_not_first(engine, plan, enrollment, invoice_repo):
    await invoice_repo.save(make_invoice(enrollment, date(2024, 4, 10), due_number=2))
    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("0"))
    assert preview.is_first_invoice is False


@pytest.mark.parametrize("received", ["0", "250.50", "1000", "1999.99"])
@pytest.mark.asyncio
async def test_balance_identity(engine, plan, enrollment, invoice_repo, received):
    await invoice_repo.save(make_invoice(enrollment, date(2024, 3, 15), arrear_amount="300", received_amount="500"))
    preview = await engine.preview("C1", plan.id, date(2024, 4, 10), Decimal(received))

    assert preview.pending_amount == preview.due_amount + preview.arrear_amount
    assert preview.balance_amount == max(Decimal("0"), preview.pending_amount - Decimal(received))


@pytest.mark.asyncio
async def test_overpayment_floors_balance_and_warns(enrollment_repo, plan_repo, invoice_repo, plan, mocker):
    logging_port = mocker.Mock(spec=LoggingPort)
    bound = logging_port.bind.return_value
    engine = InvoicePreviewEngine(enrollment_repo, plan_repo, invoice_repo, logging_port=logging_port)

    preview = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("1500"))

    assert preview.balance_amount == Decimal("0.00")
    bound.warning.assert_called_once()
    assert bound.warning.call_args.args[0] == "overpayment_not_carried"
    assert bound.warning.call_args.kwargs["excess_amount"] == "500.00"


@pytest.mark.asyncio
async def test_preview_is_repeatable_and_side_effect_free(engine, plan, enrollment_repo, invoice_repo):
    first = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("400"))
    second = await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("400"))
    assert first == second
    assert invoice_repo.invoices == {}
    assert enrollment_repo.saved_sources == []


@pytest.mark.asyncio
async def test_manual_override_precedence_until_cleared(engine, plan, enrollment, invoice_repo):
    await invoice_repo.save(make_invoice(enrollment, date(2024, 3, 15), received_amount="400"))
    await engine.ledger.set_manual(enrollment, Decimal("75"))

    on_rollover_day = await engine.preview("C1", plan.id, date(2024, 4, 21), Decimal("0"))
    assert on_rollover_day.arrear_amount == Decimal("75.00")

    await engine.ledger.clear(enrollment)
    derived = await engine.preview("C1", plan.id, date(2024, 4, 21), Decimal("0"))
    assert derived.arrear_amount == Decimal("600.00")


@pytest.mark.asyncio
async def test_metrics_emitted(enrollment_repo, plan_repo, invoice_repo, plan, mocker):
    metrics = mocker.Mock(spec=MetricsPort)
    engine = InvoicePreviewEngine(enrollment_repo, plan_repo, invoice_repo, metrics_port=metrics)
    await engine.preview("C1", plan.id, date(2024, 3, 15))
    metrics.increment_invoice_preview.assert_called_once()


@pytest.mark.asyncio
async def test_negative_received_rejected(engine, plan):
    with pytest.raises(ValidationError) as exc:
        await engine.preview("C1", plan.id, date(2024, 3, 15), Decimal("-1"))
    assert exc.value.details == {"field": "received_amount"}


@pytest.mark.asyncio
async def test_as_of_before_start_rejected(engine, plan):
    with pytest.raises(ValidationError):
        await engine.preview("C1", plan.id, date(2024, 3, 1), Decimal("0"))


@pytest.mark.asyncio
async def test_unknown_enrollment(engine):
    with pytest.raises(NotFoundError):
        await engine.preview("C404", "P404", date(2024, 3, 15))


@pytest.mark.asyncio
async def test_missing_plan(engine, enrollment, plan_repo):
    plan_repo.plans.clear()
    with pytest.raises(NotFoundError):
        await engine.preview("C1", enrollment.plan_id, date(2024, 3, 15))


@pytest.mark.asyncio
async def test_plan_without_schedule(engine, enrollment, plan_repo):
    plan_repo.plans[enrollment.plan_id] = Plan(id=enrollment.plan_id, name="Empty", duration=3, schedule=[])
    with pytest.raises(ConfigurationError):
        await engine.preview("C1", enrollment.plan_id, date(2024, 3, 15))
