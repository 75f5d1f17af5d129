from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from domain.entities import Plan
from domain.interfaces import PlanRepository
from infrastructure.db.models.plans import PlanModel


class PlanRepoSqlalchemy(PlanRepository):
    """SQLAlchemy implementation of PlanRepository."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_plan(self, plan: Plan) -> Plan:
        """Save a plan with its schedule in the canonical shape."""
        self.db.add(PlanModel.from_domain(plan))
        await self.db.commit()
        return plan

    async def find_by_id(self, plan_id: str) -> Optional[Plan]:
        """Get a plan by ID with its schedule normalized."""
        stmt = select(PlanModel).where(PlanModel.id == plan_id)
        result = await self.db.execute(stmt)
        plan_model = result.scalar_one_or_none()
        return plan_model.to_domain() if plan_model else None
