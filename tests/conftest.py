import re
from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.config import reload_config
from domain.entities import Enrollment, Invoice, InvoicePreview, InvoiceStatus, Plan
from domain.exceptions import ConflictError
from infrastructure.db.models import Base


class InMemoryPlanRepository:
    def __init__(self, plans: Optional[list[Plan]] = None):
        self.plans = {plan.id: plan for plan in plans or []}

    async def find_by_id(self, plan_id: str) -> Optional[Plan]:
        return self.plans.get(plan_id)


class InMemoryEnrollmentRepository:
    def __init__(self, enrollments: Optional[list[Enrollment]] = None):
        self.enrollments = {e.id: e for e in enrollments or []}
        self.saved_sources: list[tuple[str, object]] = []

    def add(self, enrollment: Enrollment) -> Enrollment:
        self.enrollments[enrollment.id] = enrollment
        return enrollment

    async def find_active(self, customer_id: str, plan_id: str) -> Optional[Enrollment]:
        for enrollment in self.enrollments.values():
            if enrollment.customer_id == customer_id and enrollment.plan_id == plan_id and enrollment.is_active:
                return enrollment
        return None

    async def get(self, enrollment_id: str) -> Optional[Enrollment]:
        return self.enrollments.get(enrollment_id)

    async def list_active(self) -> list[Enrollment]:
        return [e for e in self.enrollments.values() if e.is_active]

    async def save_arrear_source(self, enrollment: Enrollment) -> Enrollment:
        self.enrollments[enrollment.id].set_arrear_source(enrollment.arrear_source)
        self.saved_sources.append((enrollment.id, enrollment.arrear_source))
        return enrollment


class InMemoryInvoiceRepository:
    def __init__(self, invoices: Optional[list[Invoice]] = None):
        self.invoices: dict[str, Invoice] = {}
        for invoice in invoices or []:
            self.invoices[invoice.id] = invoice

    async def find_latest(self, enrollment_id: str, before: Optional[date] = None) -> Optional[Invoice]:
        candidates = [
            i for i in self.invoices.values()
            if i.enrollment_id == enrollment_id and (before is None or i.invoice_date < before)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda i: (i.invoice_date, i.created_at))

    async def exists_for_date(self, enrollment_id: str, invoice_date: date) -> bool:
        return any(
            i.enrollment_id == enrollment_id and i.invoice_date == invoice_date
            for i in self.invoices.values()
        )

    async def get(self, invoice_id: str) -> Optional[Invoice]:
        return self.invoices.get(invoice_id)

    async def save(self, invoice: Invoice) -> Invoice:
        if await self.exists_for_date(invoice.enrollment_id, invoice.invoice_date):
            raise ConflictError("duplicate invoice")
        self.invoices[invoice.id] = invoice
        return invoice

    async def update_status(self, invoice: Invoice, status: InvoiceStatus) -> Invoice:
        stored = self.invoices[invoice.id]
        stored.set_status(status)
        return stored

    async def next_numbers(self) -> tuple[int, int]:
        def highest(values):
            numbers = [int(re.search(r"(\d+)$", v).group(1)) for v in values if v]
            return max(numbers, default=0)

        return (
            highest([i.invoice_number for i in self.invoices.values()]) + 1,
            highest([i.receipt_number for i in self.invoices.values()]) + 1,
        )


@pytest.fixture(autouse=True)
def billing_env(monkeypatch):
    """Pin the collection-cycle settings so host env vars never leak into tests."""
    monkeypatch.setenv("BILLING_CUTOFF_DAY", "20")
    monkeypatch.setenv("ARREAR_ROLLOVER_DAY", "21")
    monkeypatch.setenv("INVOICE_NUMBER_PREFIX", "INV")
    monkeypatch.setenv("INVOICE_NUMBER_DIGITS", "6")
    monkeypatch.setenv("RECEIPT_NUMBER_DIGITS", "4")
    reload_config()
    yield
    reload_config()


@pytest.fixture
def plan() -> Plan:
    """Three-month plan with a rising schedule."""
    return Plan.create("Gold 3", [Decimal("1000"), Decimal("1200"), Decimal("1500")])


@pytest.fixture
def enrollment(plan) -> Enrollment:
    return Enrollment.create(customer_id="C1", plan_id=plan.id, start_date=date(2024, 3, 5))


@pytest.fixture
def plan_repo(plan) -> InMemoryPlanRepository:
    return InMemoryPlanRepository([plan])


@pytest.fixture
def enrollment_repo(enrollment) -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository([enrollment])


@pytest.fixture
def invoice_repo() -> InMemoryInvoiceRepository:
    return InMemoryInvoiceRepository()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """In-memory SQLite session with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


def make_invoice(
    enrollment: Enrollment,
    invoice_date: date,
    due_number: int = 1,
    due_amount: str = "1000",
    arrear_amount: str = "0",
    received_amount: str = "1000",
    balance_amount: Optional[str] = None,
    invoice_number: Optional[str] = None,
    receipt_number: Optional[str] = None,
) -> Invoice:
    """Build a stored invoice directly, bypassing the preview engine."""
    due = Decimal(due_amount)
    arrear = Decimal(arrear_amount)
    received = Decimal(received_amount)
    pending = due + arrear
    balance = Decimal(balance_amount) if balance_amount is not None else max(Decimal("0"), pending - received)
    preview = InvoicePreview(
        due_number=due_number,
        due_amount=due,
        arrear_amount=arrear,
        pending_amount=pending,
        received_amount=received,
        balance_amount=balance,
        payment_month="March 2024",
        is_first_invoice=False,
    )
    invoice = Invoice.create(
        enrollment_id=enrollment.id,
        customer_id=enrollment.customer_id,
        plan_id=enrollment.plan_id,
        invoice_date=invoice_date,
        preview=preview,
    )
    if invoice_number or receipt_number:
        invoice.set_numbers(invoice_number, receipt_number)
    return invoice
