from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from .installment import ScheduleEntry


@dataclass
class Plan:
    id: str
    name: str
    duration: int
    schedule: list[ScheduleEntry] = field(default_factory=list)

    @staticmethod
    def create(name: str, due_amounts: list[Decimal], auction_amounts: Optional[list[Decimal]] = None) -> 'Plan':
        """Build a plan whose duration is the length of the given schedule."""
        auction_amounts = auction_amounts or [Decimal("0")] * len(due_amounts)
        schedule = [
            ScheduleEntry(
                installment_number=i,
                due_amount=Decimal(str(due)),
                auction_amount=Decimal(str(auction)),
            )
            for i, (due, auction) in enumerate(zip(due_amounts, auction_amounts), start=1)
        ]
        return Plan(id=str(uuid4()), name=name, duration=len(schedule), schedule=schedule)

    @property
    def last_installment(self) -> Optional[ScheduleEntry]:
        return self.schedule[-1] if self.schedule else None
