from typing_extensions import Protocol
from domain.entities import Enrollment
from typing import Optional


class EnrollmentRepository(Protocol):
    async def find_active(self, customer_id: str, plan_id: str) -> Optional[Enrollment]: ...
    async def get(self, enrollment_id: str) -> Optional[Enrollment]: ...
    async def list_active(self) -> list[Enrollment]: ...
    async def save_arrear_source(self, enrollment: Enrollment) -> Enrollment: ...
