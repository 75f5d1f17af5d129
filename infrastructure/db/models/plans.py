from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped
from domain.entities import Plan, ScheduleEntry
from infrastructure.db.models.base import Base

# Field names older plan documents used for the per-month amount
DUE_AMOUNT_KEYS = ("due_amount", "dueAmount", "installmentAmount", "installment_amount", "monthlyAmount", "amount")
AUCTION_AMOUNT_KEYS = ("auction_amount", "auctionAmount", "dividend", "dividendAmount")


def _first_present(raw: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def normalize_schedule(raw_schedule: Optional[list[Any]], monthly_amount: Any, duration: int) -> list[ScheduleEntry]:
    """
    Convert any stored schedule shape into canonical ScheduleEntry objects.

    Handles, in order of preference:
        - a list of dicts keyed by any of DUE_AMOUNT_KEYS
        - a list of bare amounts
        - a legacy `monthly_amount` list
        - a legacy flat `monthly_amount` number repeated `duration` times
    Anything else yields an empty schedule.
    """
    amounts: list[tuple[Any, Any]] = []
    if raw_schedule:
        for item in raw_schedule:
            if isinstance(item, dict):
                amounts.append((_first_present(item, DUE_AMOUNT_KEYS), _first_present(item, AUCTION_AMOUNT_KEYS)))
            else:
                amounts.append((item, None))
    elif isinstance(monthly_amount, list):
        amounts = [(amount, None) for amount in monthly_amount]
    elif isinstance(monthly_amount, (int, float, str)) and duration > 0:
        amounts = [(monthly_amount, None)] * duration

    return [
        ScheduleEntry(
            installment_number=i,
            due_amount=Decimal(str(due if due is not None else 0)),
            auction_amount=Decimal(str(auction if auction is not None else 0)),
        )
        for i, (due, auction) in enumerate(amounts, start=1)
    ]


class PlanModel(Base):
    __tablename__ = "chit_plan"

    id: Mapped[str] = Column(String(36), primary_key=True)
    name: Mapped[str] = Column(String, nullable=False)
    duration: Mapped[int] = Column(Integer, nullable=False)
    schedule: Mapped[Optional[list]] = Column(JSON, nullable=True)
    # Pre-schedule plans stored a single amount or a bare list here
    monthly_amount: Mapped[Optional[Any]] = Column(JSON, nullable=True)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False, default=datetime.now)

    def to_domain(self) -> Plan:
        """Convert database model to domain entity."""
        return Plan(
            id=self.id,
            name=self.name,
            duration=self.duration,
            schedule=normalize_schedule(self.schedule, self.monthly_amount, self.duration),
        )

    @classmethod
    def from_domain(cls, plan: Plan) -> "PlanModel":
        """Convert domain Plan entity to database model in the canonical shape."""
        return cls(
            id=plan.id,
            name=plan.name,
            duration=plan.duration,
            schedule=[
                {
                    "due_amount": str(entry.due_amount),
                    "auction_amount": str(entry.auction_amount),
                }
                for entry in plan.schedule
            ],
            monthly_amount=None,
            created_at=datetime.now(),
        )
