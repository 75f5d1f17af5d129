from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, ForeignKey, Index, text
from sqlalchemy.orm import Mapped
from domain.entities import (
    ArrearSource,
    CarriedArrear,
    DerivedArrear,
    Enrollment,
    EnrollmentStatus,
    ManualArrear,
)
from infrastructure.db.models.base import Base


class EnrollmentModel(Base):
    __tablename__ = "chit_enrollment"
    __table_args__ = (
        # One active enrollment per customer and plan
        Index(
            "uq_chit_enrollment_active_customer_plan",
            "customer_id",
            "plan_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[str] = Column(String(36), primary_key=True)
    customer_id: Mapped[str] = Column(String, nullable=False, index=True)
    plan_id: Mapped[str] = Column(String(36), ForeignKey("chit_plan.id"), nullable=False)
    start_date: Mapped[date] = Column(Date, nullable=False)
    status: Mapped[str] = Column(String, nullable=False, default=EnrollmentStatus.ACTIVE.value)
    member_number: Mapped[Optional[int]] = Column(Integer, nullable=True)
    # Tagged union: "derived" | "manual" | "carried"
    arrear_kind: Mapped[str] = Column(String, nullable=False, default="derived")
    current_arrear: Mapped[Optional[Decimal]] = Column(Numeric(12, 2), nullable=True)
    arrear_last_updated: Mapped[Optional[datetime]] = Column(DateTime, nullable=True)

    def arrear_source(self) -> ArrearSource:
        if self.arrear_kind == "manual":
            return ManualArrear(amount=Decimal(self.current_arrear or 0), set_at=self.arrear_last_updated)
        if self.arrear_kind == "carried":
            return CarriedArrear(amount=Decimal(self.current_arrear or 0), set_at=self.arrear_last_updated)
        return DerivedArrear()

    def apply_arrear_source(self, source: ArrearSource) -> None:
        self.arrear_kind = source.kind
        if isinstance(source, DerivedArrear):
            # Cleared: zero figure and no override marker
            self.current_arrear = Decimal("0")
            self.arrear_last_updated = None
        else:
            self.current_arrear = source.amount
            self.arrear_last_updated = source.set_at

    def to_domain(self) -> Enrollment:
        return Enrollment(
            id=self.id,
            customer_id=self.customer_id,
            plan_id=self.plan_id,
            start_date=self.start_date,
            status=EnrollmentStatus(self.status),
            arrear_source=self.arrear_source(),
            member_number=self.member_number,
        )

    @classmethod
    def from_domain(cls, enrollment: Enrollment) -> "EnrollmentModel":
        model = cls(
            id=enrollment.id,
            customer_id=enrollment.customer_id,
            plan_id=enrollment.plan_id,
            start_date=enrollment.start_date,
            status=enrollment.status.value,
            member_number=enrollment.member_number,
        )
        model.apply_arrear_source(enrollment.arrear_source)
        return model
