from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass
class LedgerEntry:
    id: int
    owner_id: str
    label: str
    amount: Decimal
    category: str
    effective_date: date       # the due date, not the creation time
    recurring_rule_id: Optional[int] = None
