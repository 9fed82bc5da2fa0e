"""
Rollover Processor: carries unspent headroom from the previous month into
the current one. Runs once per month boundary, driven by the scheduled trigger.

Rollover only ever adds headroom: an overspent month leaves the following
month's rollover amount untouched.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List

import duckdb

from db import get_db, log_error, log_info
from repositories.budget_repository import list_rollover_budgets, update_rollover_amount
from repositories.ledger_repository import sum_amount
from services.errors import PersistenceFailure
from services.period_resolver import monthly_period, previous_monthly_period
from utils.dates import utc_today
from utils.money import ZERO


@dataclass
class RolloverFailure:
    owner_id: str
    period_start: date
    error: str


@dataclass
class RolloverReport:
    processed: int = 0
    updated: int = 0
    failures: List[RolloverFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self):
        return {
            "success": self.ok,
            "processed": self.processed,
            "updated": self.updated,
            "failed": [
                {"owner_id": f.owner_id, "period_start": f.period_start.isoformat(), "error": f.error}
                for f in self.failures
            ],
        }


def compute_leftover(budget, spent) -> Decimal:
    """Unspent effective budget; never negative."""
    leftover = (budget.monthly_total + budget.rollover_amount) - spent
    return leftover if leftover > 0 else ZERO


def process_rollover(today: date = None, conn=None) -> RolloverReport:
    """
    For every rollover-enabled budget of the previous month, move its
    leftover into the owner's budget for the current month.

    Args:
        today: Any day of the *current* month; defaults to the current UTC day.
        conn: Optional database connection. If not provided, opens a new one.
    """
    today = today or utc_today()
    previous = previous_monthly_period(today)
    current = monthly_period(today)
    report = RolloverReport()

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        try:
            budgets = list_rollover_budgets(conn, previous.start)
        except duckdb.Error as e:
            log_error(f"Rollover could not list budgets for {previous.start}: {e}")
            raise PersistenceFailure(f"Could not list budgets: {e}", period_start=previous.start) from e

        for budget in budgets:
            report.processed += 1
            try:
                spent = sum_amount(conn, budget.owner_id, budget.period_start, budget.period_end)
                leftover = compute_leftover(budget, spent)
                if leftover > 0:
                    report.updated += update_rollover_amount(
                        conn, budget.owner_id, current.start, leftover
                    )
                    log_info(
                        f"Rollover: owner={budget.owner_id} {previous.start} → {current.start} "
                        f"leftover={leftover}"
                    )
            except duckdb.Error as e:
                log_error(f"Rollover failed: owner={budget.owner_id} period={budget.period_start} error={e}")
                report.failures.append(RolloverFailure(budget.owner_id, budget.period_start, str(e)))
    finally:
        if own_conn:
            conn.close()

    return report
