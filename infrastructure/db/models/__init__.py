"""
Database models package.
Import Base from here or from base.py directly.
"""
from infrastructure.db.models.base import Base

# Import all models to ensure they're registered in the same registry
# This must be done after Base is created
from infrastructure.db.models.plans import PlanModel
from infrastructure.db.models.enrollments import EnrollmentModel
from infrastructure.db.models.invoices import InvoiceModel

__all__ = ["Base", "PlanModel", "EnrollmentModel", "InvoiceModel"]
