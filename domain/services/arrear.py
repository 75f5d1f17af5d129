"""
Arrear Rules Module

Pure rules behind the arrear ledger. Arrears are not recomputed continuously:
they snap forward to the previous balance once a month on the rollover day
(21st) and are otherwise carried unchanged from the previous invoice.
"""
import calendar
from datetime import date
from decimal import Decimal
from typing import Optional, TypedDict

from domain.config import get_billing_config
from domain.entities import DerivedArrear, Enrollment, Invoice
from .money import ZERO, round_money


class ArrearResolution(TypedDict):
    amount: Decimal
    source: str  # "invoice_manual" | "manual" | "carried" | "first_invoice" | "rollover_day" | "carried_forward"


class RolloverQualification(TypedDict):
    qualifies: bool
    reason: str


def is_last_day_of_month(day: date) -> bool:
    return day.day == calendar.monthrange(day.year, day.month)[1]


def derive_from_previous(previous_invoice: Optional[Invoice], as_of_date: date, rollover_day: Optional[int] = None) -> ArrearResolution:
    """
    Arrear implied by the invoice history alone.

    On the rollover day the previous balance becomes the arrear; on any other
    day the previous invoice's arrear is carried forward unchanged.
    """
    rollover_day = rollover_day if rollover_day is not None else get_billing_config().rollover_day
    if previous_invoice is None:
        return ArrearResolution(amount=ZERO, source="first_invoice")
    if as_of_date.day == rollover_day:
        return ArrearResolution(amount=round_money(previous_invoice.balance_amount or ZERO), source="rollover_day")
    return ArrearResolution(amount=round_money(previous_invoice.arrear_amount or ZERO), source="carried_forward")


def resolve_arrear(
    enrollment: Enrollment,
    previous_invoice: Optional[Invoice],
    as_of_date: date,
    manual_arrear: Optional[Decimal] = None,
    rollover_day: Optional[int] = None,
) -> ArrearResolution:
    """
    Apply arrear precedence, highest first:

    1. a manual arrear supplied for this one invoice
    2. the figure stored on the enrollment (manual override or rollover)
    3. derivation from the previous invoice
    """
    if manual_arrear is not None:
        return ArrearResolution(amount=round_money(manual_arrear), source="invoice_manual")
    source = enrollment.arrear_source
    if not isinstance(source, DerivedArrear):
        return ArrearResolution(amount=round_money(source.amount), source=source.kind)
    return derive_from_previous(previous_invoice, as_of_date, rollover_day=rollover_day)


def rollover_arrear(previous_invoice: Invoice) -> Decimal:
    """New arrear after a monthly rollover: the previous invoice's unpaid balance."""
    return round_money(previous_invoice.balance_amount or ZERO)


def qualifies_for_rollover(
    due_number: int,
    as_of_date: date,
    start_date: date,
    rollover_day: Optional[int] = None,
) -> RolloverQualification:
    """
    Whether `as_of_date` is a rollover day for an enrollment that started on
    `start_date` and whose latest invoice billed `due_number`.

    Due 1 rolls over once, on the last calendar day of the enrollment month.
    Due 2 onwards rolls over on the rollover day (21st) of every month.
    """
    rollover_day = rollover_day if rollover_day is not None else get_billing_config().rollover_day
    if due_number <= 1:
        if (as_of_date.year, as_of_date.month) != (start_date.year, start_date.month):
            return RolloverQualification(qualifies=False, reason="Due 1 - outside enrollment month")
        if is_last_day_of_month(as_of_date):
            return RolloverQualification(qualifies=True, reason="Due 1 - last day of month")
        return RolloverQualification(qualifies=False, reason="Due 1 - wait for last day of month")
    if as_of_date.day == rollover_day:
        return RolloverQualification(qualifies=True, reason=f"Due 2+ - day {rollover_day} of month")
    return RolloverQualification(qualifies=False, reason=f"Due 2+ - wait for day {rollover_day}")
