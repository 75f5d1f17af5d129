from typing_extensions import Protocol
from domain.entities import Plan
from typing import Optional


class PlanRepository(Protocol):
    async def find_by_id(self, plan_id: str) -> Optional[Plan]: ...
