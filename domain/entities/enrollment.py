from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import uuid4


class EnrollmentStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEFAULTED = "defaulted"


@dataclass(frozen=True)
class DerivedArrear:
    """No stored figure: the ledger derives arrear from the invoice history."""
    kind: str = "derived"


@dataclass(frozen=True)
class ManualArrear:
    """Staff-set figure; wins over derivation until explicitly cleared."""
    amount: Decimal
    set_at: datetime
    kind: str = "manual"


@dataclass(frozen=True)
class CarriedArrear:
    """Figure written by the monthly rollover from the previous balance."""
    amount: Decimal
    set_at: datetime
    kind: str = "carried"


ArrearSource = Union[DerivedArrear, ManualArrear, CarriedArrear]


@dataclass
class Enrollment:
    id: str
    customer_id: str
    plan_id: str
    start_date: date
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    arrear_source: ArrearSource = field(default_factory=DerivedArrear)
    member_number: Optional[int] = None

    @staticmethod
    def create(customer_id: str, plan_id: str, start_date: date, member_number: Optional[int] = None) -> 'Enrollment':
        return Enrollment(
            id=str(uuid4()),
            customer_id=customer_id,
            plan_id=plan_id,
            start_date=start_date,
            member_number=member_number,
        )

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    @property
    def current_arrear(self) -> Optional[Decimal]:
        """Stored arrear figure, or None while the ledger derives it."""
        if isinstance(self.arrear_source, DerivedArrear):
            return None
        return self.arrear_source.amount

    @property
    def arrear_last_updated(self) -> Optional[datetime]:
        if isinstance(self.arrear_source, DerivedArrear):
            return None
        return self.arrear_source.set_at

    @property
    def has_manual_override(self) -> bool:
        return isinstance(self.arrear_source, ManualArrear)

    def set_arrear_source(self, source: ArrearSource) -> 'Enrollment':
        self.arrear_source = source
        return self
