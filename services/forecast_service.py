### Forecast service nets spend so far against recurring commitments that have not reached the ledger yet.
from datetime import date, timedelta
from decimal import Decimal

import duckdb

import config
from db import get_db, log_error
from models.forecast_result import ForecastResult, UpcomingItem
from repositories.ledger_repository import sum_amount, sum_by_category
from repositories.recurring_repository import list_active_rules
from services.budget_service import budget_for_period, category_breakdown
from services.errors import PersistenceFailure
from services.occurrence_engine import occurrences_between
from utils.dates import utc_today
from utils.money import ZERO


def get_occurrences_in_window(rule, start: date, end_exclusive: date):
    """Not-yet-materialized due dates of ``rule`` in [start, end_exclusive)."""
    return occurrences_between(rule, start, end_exclusive)


def upcoming_items(rules, today: date, window_days=None):
    """Occurrences due from today through ``window_days`` ahead, soonest first."""
    window_days = config.UPCOMING_WINDOW_DAYS if window_days is None else window_days
    window_end = today + timedelta(days=window_days + 1)

    items = []
    for rule in rules:
        for occ_date in get_occurrences_in_window(rule, today, window_end):
            items.append(UpcomingItem(
                rule_id=rule.id,
                label=rule.label,
                amount=rule.resolved_amount,
                category=rule.category or "Other",
                date=occ_date,
            ))
    return sorted(items, key=lambda x: (x.date, x.rule_id))


def calculate_forecast(budget, total_spent: Decimal, rules, today: date, period,
                       spent_by_category=None) -> ForecastResult:
    """
    Pure forecast arithmetic.

        remaining_budget = monthly_total - total_spent
        safe_to_spend    = remaining_budget - upcoming_recurring_total

    Only occurrences with max(today, period start) <= date < period end count
    toward the upcoming total. ``safe_to_spend`` keeps its sign.
    """
    monthly_total = budget.monthly_total if budget else ZERO
    window_start = max(today, period.start)

    upcoming_total = ZERO
    for rule in rules:
        for _ in get_occurrences_in_window(rule, window_start, period.end):
            upcoming_total += rule.resolved_amount

    remaining_budget = monthly_total - total_spent
    return ForecastResult(
        period_start=period.start,
        period_end=period.end,
        monthly_total=monthly_total,
        total_spent=total_spent,
        remaining_budget=remaining_budget,
        upcoming_recurring_total=upcoming_total,
        safe_to_spend=remaining_budget - upcoming_total,
        upcoming_list=upcoming_items(rules, today),
        per_category=category_breakdown(budget, spent_by_category or {}),
    )


def get_forecast(owner_id, token=None, today: date = None, conn=None) -> ForecastResult:
    """
    Read-only forecast for the owner's period.

    A failing recurring-rule lookup degrades to a result without upcoming
    commitments (and a warning) instead of failing the request.
    """
    today = today or utc_today()

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        try:
            budget, period = budget_for_period(conn, owner_id, token, today)
            total_spent = sum_amount(conn, owner_id, period.start, period.end)
            spent_by_category = sum_by_category(conn, owner_id, period.start, period.end)
        except duckdb.Error as e:
            log_error(f"Forecast totals failed for owner={owner_id}: {e}")
            raise PersistenceFailure(f"Could not read period totals: {e}", owner_id=owner_id) from e

        warnings = []
        try:
            rules = list_active_rules(conn, owner_id=owner_id)
        except duckdb.Error as e:
            log_error(f"Forecast rule lookup failed for owner={owner_id}: {e}")
            rules = []
            warnings.append("Recurring commitments unavailable; forecast excludes them.")
    finally:
        if own_conn:
            conn.close()

    result = calculate_forecast(budget, total_spent, rules, today, period, spent_by_category)
    result.warnings.extend(warnings)
    return result
