from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from domain.entities import Enrollment, EnrollmentStatus
from domain.exceptions import NotFoundError
from domain.interfaces import EnrollmentRepository
from infrastructure.db.models.enrollments import EnrollmentModel


class EnrollmentRepoSqlalchemy(EnrollmentRepository):
    """SQLAlchemy implementation of EnrollmentRepository."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, enrollment: Enrollment) -> Enrollment:
        self.db.add(EnrollmentModel.from_domain(enrollment))
        await self.db.commit()
        return enrollment

    async def find_active(self, customer_id: str, plan_id: str) -> Optional[Enrollment]:
        stmt = select(EnrollmentModel).where(
            EnrollmentModel.customer_id == customer_id,
            EnrollmentModel.plan_id == plan_id,
            EnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
        )
        result = await self.db.execute(stmt)
        model = result.scalars().first()
        return model.to_domain() if model else None

    async def get(self, enrollment_id: str) -> Optional[Enrollment]:
        model = await self.db.get(EnrollmentModel, enrollment_id, populate_existing=True)
        return model.to_domain() if model else None

    async def list_active(self) -> list[Enrollment]:
        stmt = (
            select(EnrollmentModel)
            .where(EnrollmentModel.status == EnrollmentStatus.ACTIVE.value)
            .order_by(EnrollmentModel.customer_id, EnrollmentModel.id)
        )
        result = await self.db.execute(stmt)
        return [model.to_domain() for model in result.scalars().all()]

    async def save_arrear_source(self, enrollment: Enrollment) -> Enrollment:
        """Persist only the arrear columns; the rest of the enrollment is owned elsewhere."""
        model = await self.db.get(EnrollmentModel, enrollment.id)
        if model is None:
            raise NotFoundError("Enrollment", enrollment.id)
        model.apply_arrear_source(enrollment.arrear_source)
        await self.db.commit()
        return enrollment
