from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class UpcomingItemDTO:
    """Single upcoming recurring occurrence."""
    rule_id: int
    label: str
    amount: float
    category: str
    date: str  # ISO format YYYY-MM-DD


@dataclass
class CategoryBreakdownDTO:
    category: str
    allocated: float
    spent: float
    remaining: float
    percent_used: Optional[float]  # not clamped to 1.0


@dataclass
class ForecastResponseDTO:
    """Complete forecast response for one budget period."""
    period_start: str  # ISO format
    period_end: str  # ISO format, exclusive
    monthly_total: float
    total_spent: float
    remaining_budget: float
    upcoming_recurring_total: float
    safe_to_spend: float  # signed
    upcoming_list: List[UpcomingItemDTO] = field(default_factory=list)
    per_category: List[CategoryBreakdownDTO] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_forecast(cls, forecast):
        """Convert ForecastResult to JSON-serializable DTO."""
        return cls(
            period_start=forecast.period_start.isoformat(),
            period_end=forecast.period_end.isoformat(),
            monthly_total=float(forecast.monthly_total),
            total_spent=float(forecast.total_spent),
            remaining_budget=float(forecast.remaining_budget),
            upcoming_recurring_total=float(forecast.upcoming_recurring_total),
            safe_to_spend=float(forecast.safe_to_spend),
            upcoming_list=[
                UpcomingItemDTO(
                    rule_id=item.rule_id,
                    label=item.label,
                    amount=float(item.amount),
                    category=item.category,
                    date=item.date.isoformat(),
                )
                for item in forecast.upcoming_list
            ],
            per_category=[
                CategoryBreakdownDTO(
                    category=c.category,
                    allocated=float(c.allocated),
                    spent=float(c.spent),
                    remaining=float(c.remaining),
                    percent_used=c.percent_used,
                )
                for c in forecast.per_category
            ],
            warnings=list(forecast.warnings),
        )
