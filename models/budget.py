from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from models.period import Period


@dataclass
class Allocation:
    category: str
    amount: Decimal


@dataclass
class BudgetDefinition:
    id: int
    owner_id: str
    period_type: str
    period_start: date
    period_end: date           # exclusive
    monthly_total: Decimal     # overall cap for the period, whatever its type
    rollover_amount: Decimal = Decimal("0.00")
    rollover_enabled: bool = False
    alert_threshold: float = 0.8
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def period(self) -> Period:
        return Period(self.period_type, self.period_start, self.period_end)

    @property
    def effective_total(self) -> Decimal:
        if self.rollover_enabled:
            return self.monthly_total + self.rollover_amount
        return self.monthly_total

    def allocation_for(self, category: str) -> Optional[Allocation]:
        for alloc in self.allocations:
            if alloc.category == category:
                return alloc
        return None

    @property
    def allocated_total(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0.00"))
