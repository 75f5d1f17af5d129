from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ScheduleEntry:
    """One month of a plan's fixed schedule (1-based installment number)."""
    installment_number: int
    due_amount: Decimal
    # Dividend returned to members; display only
    auction_amount: Decimal = Decimal("0")
