from .enrollment_repo import EnrollmentRepository
from .invoice_repo import InvoiceRepository
from .plan_repo import PlanRepository
from .lock_port import LockPort, enrollment_lock_key
from .metrics_port import MetricsPort
from .logging_port import LoggingPort, BoundLogger

__all__ = ["EnrollmentRepository", "InvoiceRepository", "PlanRepository", "LockPort", "enrollment_lock_key", "MetricsPort", "LoggingPort", "BoundLogger"]
