from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


@dataclass
class UpcomingItem:
    rule_id: int
    label: str
    amount: Decimal
    category: str
    date: date


@dataclass
class CategoryBreakdown:
    category: str
    allocated: Decimal
    spent: Decimal
    remaining: Decimal
    percent_used: Optional[float]   # unclamped; None when nothing is allocated


@dataclass
class ForecastResult:
    period_start: date
    period_end: date
    monthly_total: Decimal
    total_spent: Decimal
    remaining_budget: Decimal
    upcoming_recurring_total: Decimal
    safe_to_spend: Decimal          # signed; display layers clamp
    upcoming_list: List[UpcomingItem] = field(default_factory=list)
    per_category: List[CategoryBreakdown] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
