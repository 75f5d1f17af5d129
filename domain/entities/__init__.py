# import
from .installment import ScheduleEntry
from .plan import Plan
from .enrollment import (
    ArrearSource,
    CarriedArrear,
    DerivedArrear,
    Enrollment,
    EnrollmentStatus,
    ManualArrear,
)
from .invoice import Invoice, InvoicePreview, InvoiceStatus

__all__ = [
    "ScheduleEntry",
    "Plan",
    "ArrearSource",
    "CarriedArrear",
    "DerivedArrear",
    "Enrollment",
    "EnrollmentStatus",
    "ManualArrear",
    "Invoice",
    "InvoicePreview",
    "InvoiceStatus",
]
