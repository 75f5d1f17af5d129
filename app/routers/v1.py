from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from application.service.arrear_ledger import ArrearLedger
from application.service.create_invoice import CreateInvoiceService
from application.service.invoice_preview import InvoicePreviewEngine
from application.service.invoice_status import InvoiceStatusService
from application.service.monthly_rollover import MonthlyRolloverJob
from app.schemas.arrear_schema import (
    EnrollmentRef,
    ManualArrearRequest,
    RolloverRequest,
    RolloverResponse,
    WaiveRequest,
    WaiveResponse,
)
from app.schemas.invoice_schema import InvoiceCreate, InvoicePreviewResponse, InvoiceResponse, InvoiceStatusUpdate
from domain.interfaces import EnrollmentRepository, InvoiceRepository, PlanRepository
from infrastructure.db.database import get_db_session
from infrastructure.db.repositories.enrollment_repo_sqlalchemy import EnrollmentRepoSqlalchemy
from infrastructure.db.repositories.invoice_repo_sqlalchemy import InvoiceRepoSqlalchemy
from infrastructure.db.repositories.plan_repo_sqlalchemy import PlanRepoSqlalchemy
from infrastructure.locks.keyed_lock import invoice_locks
from infrastructure.logging.logging_adapter import LoggingAdapter
from infrastructure.metrics.metrics_adapter import MetricsAdapter


@dataclass
class Repositories:
    enrollments: EnrollmentRepository
    plans: PlanRepository
    invoices: InvoiceRepository


async def get_repositories(db: AsyncSession = Depends(get_db_session)) -> Repositories:
    """Repositories sharing one session per request. Tests override this dependency."""
    return Repositories(
        enrollments=EnrollmentRepoSqlalchemy(db),
        plans=PlanRepoSqlalchemy(db),
        invoices=InvoiceRepoSqlalchemy(db),
    )


router = APIRouter(prefix="/v1")


def _ledger(repos: Repositories) -> ArrearLedger:
    return ArrearLedger(
        repos.enrollments,
        repos.invoices,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )


@router.get("/invoices/preview")
async def preview_invoice(
    customer_id: str,
    plan_id: str,
    as_of_date: Optional[date] = None,
    received_amount: Decimal = Query(Decimal("0"), ge=0),
    repos: Repositories = Depends(get_repositories),
) -> InvoicePreviewResponse:
    """
    Quote the invoice that would be created for a customer's plan.

    Nothing is persisted; calling twice with the same inputs returns the same numbers.
    `as_of_date` defaults to today.
    """
    engine = InvoicePreviewEngine(
        repos.enrollments,
        repos.plans,
        repos.invoices,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    preview = await engine.preview(
        customer_id=customer_id,
        plan_id=plan_id,
        as_of_date=as_of_date or date.today(),
        proposed_received_amount=received_amount,
    )
    return InvoicePreviewResponse.from_domain(preview)


@router.post("/invoices", status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreate,
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
    repos: Repositories = Depends(get_repositories),
) -> InvoiceResponse:
    """
    Create an invoice with the same amounts the preview gives for `invoice_date`.

    A second invoice for the same enrollment and date is rejected with 409.
    """
    srv = CreateInvoiceService(
        enrollment_repo=repos.enrollments,
        plan_repo=repos.plans,
        invoice_repo=repos.invoices,
        lock_port=invoice_locks,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    invoice = await srv.execute(
        customer_id=payload.customer_id,
        plan_id=payload.plan_id,
        received_amount=payload.received_amount,
        invoice_date=payload.invoice_date,
        manual_arrear_amount=payload.manual_arrear_amount,
        manual_balance_amount=payload.manual_balance_amount,
        manual_due_number=payload.manual_due_number,
        request_id=x_request_id or str(uuid.uuid4()),
    )
    return InvoiceResponse.from_domain(invoice)


@router.patch("/invoices/{invoice_id}/status")
async def update_invoice_status(
    invoice_id: str,
    payload: InvoiceStatusUpdate,
    repos: Repositories = Depends(get_repositories),
) -> InvoiceResponse:
    srv = InvoiceStatusService(repos.invoices)
    invoice = await srv.execute(invoice_id, payload.status)
    return InvoiceResponse.from_domain(invoice)


@router.post("/arrears/rollover")
async def run_rollover(payload: RolloverRequest, repos: Repositories = Depends(get_repositories)) -> RolloverResponse:
    """
    Run the monthly arrear rollover for every active enrollment.

    Enrollments that do not qualify on `as_of_date` are reported as skipped
    unless `force` is set. Per-enrollment failures are listed under errors.
    """
    job = MonthlyRolloverJob(
        enrollment_repo=repos.enrollments,
        invoice_repo=repos.invoices,
        plan_repo=repos.plans,
        lock_port=invoice_locks,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    result = await job.run_for_all(payload.as_of_date, force=payload.force)
    return RolloverResponse(
        as_of_date=payload.as_of_date,
        summary=result["summary"],
        details={
            "updated": result["updated"],
            "skipped": result["skipped"],
            "errors": result["errors"],
        },
        cancelled=result["cancelled"],
    )


@router.post("/arrears/clear", status_code=status.HTTP_204_NO_CONTENT)
async def clear_arrear(payload: EnrollmentRef, repos: Repositories = Depends(get_repositories)) -> Response:
    await _ledger(repos).clear_for(payload.customer_id, payload.plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/arrears/manual", status_code=status.HTTP_204_NO_CONTENT)
async def set_manual_arrear(payload: ManualArrearRequest, repos: Repositories = Depends(get_repositories)) -> Response:
    await _ledger(repos).set_manual_for(payload.customer_id, payload.plan_id, payload.amount)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/arrears/waive")
async def waive_arrears(payload: WaiveRequest, repos: Repositories = Depends(get_repositories)) -> WaiveResponse:
    """Set the arrear of the listed enrollments, or of every active one, to zero."""
    cleared = await _ledger(repos).waive(enrollment_ids=payload.enrollment_ids, clear_all=payload.clear_all)
    return WaiveResponse(cleared_count=cleared)
