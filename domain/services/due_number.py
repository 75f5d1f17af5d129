"""
Due Number Module

Determines which installment of a plan is being collected on a given day.
Collection runs in a window: up to the cutoff day (20th) staff collect the
current month's due, after it they collect next month's due in advance.
"""
from datetime import date
from typing import Optional

from domain.config import get_billing_config
from domain.entities import Enrollment

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def months_between(start: date, end: date) -> int:
    """Calendar-month difference; days within the month are ignored."""
    return (end.year - start.year) * 12 + (end.month - start.month)


class DueNumberCalculator:
    def __init__(self, cutoff_day: Optional[int] = None):
        self.cutoff_day = cutoff_day if cutoff_day is not None else get_billing_config().cutoff_day

    def current_installment(self, enrollment: Enrollment, as_of_date: date, duration: int) -> int:
        """
        Installment number active on `as_of_date`, clamped to [1, duration].

        Example (cutoff 20, start 2024-01-05):
            2024-01-20 -> 1
            2024-01-21 -> 2
            2024-02-10 -> 2
        """
        installment = months_between(enrollment.start_date, as_of_date) + 1
        if as_of_date.day > self.cutoff_day:
            installment += 1
        return max(1, min(duration, installment))

    def payment_month(self, as_of_date: date) -> str:
        """Billing-period label such as "April 2024"; past the cutoff it names next month."""
        year, month = as_of_date.year, as_of_date.month
        if as_of_date.day > self.cutoff_day:
            month += 1
            if month > 12:
                month = 1
                year += 1
        return f"{MONTH_NAMES[month - 1]} {year}"
