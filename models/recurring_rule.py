from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

FREQUENCIES = ("weekly", "monthly", "yearly")


@dataclass(frozen=True)
class FixedAmount:
    amount: Decimal

    def resolve(self) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class VariableAmount:
    """Amount that tracks the last observed charge; ``estimate`` until one is seen."""
    estimate: Decimal
    last_observed: Optional[Decimal] = None

    def resolve(self) -> Decimal:
        if self.last_observed is not None:
            return self.last_observed
        return self.estimate


RuleAmount = Union[FixedAmount, VariableAmount]


@dataclass
class RecurringRule:
    id: int
    owner_id: str
    label: str
    amount: RuleAmount
    category: str
    frequency: str          # 'weekly' | 'monthly' | 'yearly'
    start_date: date
    active: bool = True
    day_of_period: Optional[int] = None   # day-of-month hint, 0 = last day
    next_due_date: Optional[date] = None  # None = never run

    @property
    def anchor(self) -> date:
        return self.next_due_date or self.start_date

    @property
    def resolved_amount(self) -> Decimal:
        return self.amount.resolve()
