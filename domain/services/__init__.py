from .schedule import ScheduleResolver
from .due_number import DueNumberCalculator
from .arrear import resolve_arrear, rollover_arrear, qualifies_for_rollover
from .money import round_money, ZERO

__all__ = ["ScheduleResolver", "DueNumberCalculator", "resolve_arrear", "rollover_arrear", "qualifies_for_rollover", "round_money", "ZERO"]
