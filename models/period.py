from dataclasses import dataclass
from datetime import date

PERIOD_TYPES = ("monthly", "weekly", "custom")


@dataclass(frozen=True)
class Period:
    """Half-open budget period ``[start, end)`` of UTC calendar days."""
    period_type: str
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d < self.end

    @property
    def length_days(self) -> int:
        return (self.end - self.start).days
