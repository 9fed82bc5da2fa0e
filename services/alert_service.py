from datetime import date

from db import get_db, log_info
from repositories.budget_repository import find_budget_covering
from repositories.ledger_repository import create_entry, sum_amount, sum_by_category
from services.alert_engine import evaluate_alerts
from services.notification_sink import emit_alerts
from services.period_resolver import monthly_period
from utils.dates import utc_today
from utils.money import to_money


def _totals_for_day(conn, owner_id, day: date):
    """(budget, period, total_spent, spent_by_category) for the period containing ``day``."""
    budget = find_budget_covering(conn, owner_id, day)
    period = budget.period if budget else monthly_period(day)
    total = sum_amount(conn, owner_id, period.start, period.end)
    by_category = sum_by_category(conn, owner_id, period.start, period.end)
    return budget, period, total, by_category


def check_expense(owner_id, amount, category, on_date: date = None, conn=None):
    """
    Pre-commit check: alerts that would fire if this expense were recorded.
    Nothing is written.
    """
    on_date = on_date or utc_today()

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        budget, _, total, by_category = _totals_for_day(conn, owner_id, on_date)
    finally:
        if own_conn:
            conn.close()

    return evaluate_alerts(total, by_category, budget,
                           candidate_amount=amount, candidate_category=category)


def record_expense(owner_id, label, amount, category, on_date: date = None,
                   sink=None, conn=None):
    """
    Record an expense and evaluate alerts against the totals that existed
    before it. Alerts are handed to the notification sink.

    Returns (LedgerEntry, alerts).
    """
    on_date = on_date or utc_today()
    amount = to_money(amount)
    if amount < 0:
        raise ValueError("Amount must be non-negative.")
    if not label or not label.strip():
        raise ValueError("Description is required.")

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        budget, _, total, by_category = _totals_for_day(conn, owner_id, on_date)
        entry = create_entry(conn, owner_id, label.strip(), amount, category, on_date)
    finally:
        if own_conn:
            conn.close()

    alerts = evaluate_alerts(total, by_category, budget,
                             candidate_amount=amount, candidate_category=category)
    log_info(f"Expense {entry.id} recorded for owner={owner_id}: {len(alerts)} alert(s)")
    emit_alerts(owner_id, alerts, sink=sink)
    return entry, alerts
