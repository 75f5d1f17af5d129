from decimal import Decimal

from domain.entities import Plan
from domain.exceptions import ConfigurationError
from .money import round_money


class ScheduleResolver:
    """Looks up the due amount of an installment in a plan's fixed schedule."""

    @staticmethod
    def clamp(installment_number: int, duration: int) -> int:
        return max(1, min(duration, installment_number))

    def amount_for(self, plan: Plan, installment_number: int) -> Decimal:
        """
        Due amount for a 1-based installment number.

        Numbers past the end of the schedule keep billing at the final
        installment's rate; numbers below 1 bill the first installment.

        Raises:
            ConfigurationError: If the plan has no schedule
        """
        if not plan.schedule:
            raise ConfigurationError(f"Plan {plan.id} has no installment schedule", plan_id=plan.id)
        # duration and schedule length can disagree on legacy plans
        last = min(plan.duration, len(plan.schedule)) if plan.duration > 0 else len(plan.schedule)
        index = self.clamp(installment_number, last) - 1
        return round_money(plan.schedule[index].due_amount)
