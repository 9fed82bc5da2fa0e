import csv
from dataclasses import asdict
import io
from datetime import date

import config
from db import get_db, log_info
from models.budget import Allocation
from models.forecast_result import CategoryBreakdown
from repositories.budget_repository import find_budget, find_budget_covering, upsert_budget
from repositories.ledger_repository import list_entries, sum_amount, sum_by_category
from services.alert_engine import evaluate_alerts, over_allocation_alert
from services.period_resolver import monthly_period, resolve_period, resolve_period_token
from utils.dates import utc_today
from utils.money import ZERO, to_money


def clamp_alert_threshold(raw) -> float:
    """Thresholds outside [0.5, 0.8], missing or unparsable fall back to the default."""
    if raw is None or raw == "":
        return config.DEFAULT_ALERT_THRESHOLD
    try:
        pct = float(raw)
    except (TypeError, ValueError):
        return config.DEFAULT_ALERT_THRESHOLD
    if config.MIN_ALERT_THRESHOLD <= pct <= config.MAX_ALERT_THRESHOLD:
        return pct
    return config.DEFAULT_ALERT_THRESHOLD


def set_budget(owner_id, period_type, monthly_total, month=None, start=None, end=None,
               allocations=(), alert_threshold=None, rollover_enabled=False, conn=None):
    """
    Create or replace the owner's budget for a period.

    Over-allocation is allowed and reported as an info alert.
    Returns (BudgetDefinition, alerts).
    """
    period = resolve_period(period_type, month=month, start=start, end=end)
    monthly_total = to_money(monthly_total)
    if monthly_total < 0:
        raise ValueError("Budget total must be non-negative.")
    allocations = [
        Allocation(category=a.category.strip(), amount=to_money(a.amount))
        for a in allocations
    ]
    if any(a.amount < 0 for a in allocations):
        raise ValueError("Allocation amounts must be non-negative.")

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        budget = upsert_budget(
            conn,
            owner_id,
            period,
            monthly_total,
            clamp_alert_threshold(alert_threshold),
            rollover_enabled=rollover_enabled,
            allocations=allocations,
        )
    finally:
        if own_conn:
            conn.close()

    log_info(f"Budget saved: owner={owner_id} period={period.start}..{period.end} total={monthly_total}")
    alert = over_allocation_alert(budget)
    return budget, [alert] if alert else []


def budget_for_period(conn, owner_id, token, today: date):
    """
    Find the budget a query refers to.

    With no token the definition covering ``today`` is used (any period type),
    falling back to the calendar month. Returns (budget_or_None, Period).
    """
    if token is None or not str(token).strip():
        budget = find_budget_covering(conn, owner_id, today)
        if budget is not None:
            return budget, budget.period
        return None, monthly_period(today)

    period = resolve_period_token(token, today)
    budget = find_budget(conn, owner_id, period.start)
    if budget is not None:
        return budget, budget.period
    return None, period


def category_breakdown(budget, spent_by_category: dict) -> list:
    """Allocated / spent / remaining / percent used for each allocation."""
    if budget is None:
        return []
    rows = []
    for alloc in budget.allocations:
        spent = to_money(spent_by_category.get(alloc.category, ZERO))
        percent = float(spent / alloc.amount) if alloc.amount > 0 else None
        rows.append(CategoryBreakdown(
            category=alloc.category,
            allocated=alloc.amount,
            spent=spent,
            remaining=alloc.amount - spent,
            percent_used=percent,
        ))
    return rows


def _days_passed(period, today: date) -> int:
    if today < period.start:
        return 0
    if today >= period.end:
        return period.length_days
    return (today - period.start).days + 1


def get_budget_status(owner_id, token=None, today: date = None, conn=None) -> dict:
    today = today or utc_today()

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        budget, period = budget_for_period(conn, owner_id, token, today)
        total_spent = sum_amount(conn, owner_id, period.start, period.end)
        spent_by_category = sum_by_category(conn, owner_id, period.start, period.end)
    finally:
        if own_conn:
            conn.close()

    days_passed = _days_passed(period, today)
    effective = budget.effective_total if budget else None

    return {
        "period_type": period.period_type,
        "period_start": period.start.isoformat(),
        "period_end": period.end.isoformat(),
        "budget": {
            "id": budget.id,
            "monthly_total": budget.monthly_total,
            "effective_total": effective,
            "alert_threshold": budget.alert_threshold,
            "rollover_enabled": budget.rollover_enabled,
            "rollover_amount": budget.rollover_amount,
        } if budget else None,
        "total_spent": total_spent,
        "remaining": (effective - total_spent) if budget else None,
        "percent_used": float(total_spent / effective) if budget and effective > 0 else None,
        "per_category": [asdict(c) for c in category_breakdown(budget, spent_by_category)],
        "alerts": [a.to_dict() for a in evaluate_alerts(total_spent, spent_by_category, budget)],
        "days_in_period": period.length_days,
        "days_passed": days_passed,
        "days_left": max(0, period.length_days - days_passed),
        "daily_average": to_money(total_spent / days_passed) if days_passed else ZERO,
    }


def export_period_csv(owner_id, token=None, today: date = None, conn=None):
    """
    Render the period's ledger entries as CSV, newest first.
    Returns (filename, csv_text).
    """
    today = today or utc_today()
    period = resolve_period_token(token, today)

    own_conn = False
    if conn is None:
        conn = get_db()
        own_conn = True

    try:
        entries = list_entries(conn, owner_id, period.start, period.end)
    finally:
        if own_conn:
            conn.close()

    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["date", "amount", "category", "description"])
    for e in entries:
        writer.writerow([
            e.effective_date.isoformat(),
            str(e.amount),
            e.category,
            (e.label or "").replace("\r\n", " ").replace("\n", " "),
        ])

    label = token.strip() if token and str(token).strip() else period.start.strftime("%Y-%m")
    return f"budget-{label.replace('..', '_')}.csv", out.getvalue()
