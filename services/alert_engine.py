"""
Alert/Threshold Engine: Deterministic Budget Threshold Alerts

Pure functions: period totals + budget definition (+ optional candidate
expense) → ordered list of Alerts. No database access; no side effects.

Comparisons always use the projected total, i.e. the existing total plus
the candidate expense. A cap of zero means "no cap" and never alerts.
"""
from decimal import Decimal

import config
from models.alert import Alert
from utils.money import ZERO, format_money, fraction, to_money


def _overall_alerts(projected: Decimal, budget) -> list:
    if budget.monthly_total <= 0:
        return []
    effective = budget.effective_total
    if effective <= 0:
        return []

    shown = f"{format_money(projected)} / {format_money(effective)}"
    if projected > effective:
        return [Alert("warning", f"Budget exceeded: {shown}")]
    if projected >= effective * fraction(config.OVERALL_CHECKPOINT):
        pct = int(config.OVERALL_CHECKPOINT * 100)
        return [Alert("warning", f"You've reached {pct}% of your budget: {shown}")]
    threshold = fraction(budget.alert_threshold)
    if projected >= effective * threshold:
        return [Alert("info", f"You're approaching your budget ({threshold * 100:.0f}%): {shown}")]
    return []


def _category_alert(category: str, projected: Decimal, allocated: Decimal):
    if allocated is None or allocated <= 0:
        return None
    shown = f"{format_money(projected)} / {format_money(allocated)}"
    if projected > allocated:
        return Alert("warning", f"Category '{category}' budget exceeded: {shown}")
    if projected >= allocated * fraction(config.CATEGORY_CHECKPOINT):
        return Alert("info", f"Approaching '{category}' allocation: {shown}")
    return None


def evaluate_alerts(total_spent, spent_by_category: dict, budget,
                    candidate_amount=None, candidate_category=None) -> list:
    """
    Evaluate overall and per-category thresholds.

    Args:
        total_spent: Period total already on the ledger.
        spent_by_category: {category: spent} for the period.
        budget: BudgetDefinition, or None when no budget is configured.
        candidate_amount: Expense being considered (pre-commit variant).
        candidate_category: Its category. When given, only that category's
            allocation is checked; otherwise every allocation is.

    Returns:
        Alerts in order: overall first, then categories in allocation order.
    """
    if budget is None:
        return []

    candidate = to_money(candidate_amount) if candidate_amount is not None else ZERO
    spent_by_category = spent_by_category or {}

    alerts = _overall_alerts(to_money(total_spent) + candidate, budget)

    if candidate_category is not None:
        alloc = budget.allocation_for(candidate_category)
        if alloc is not None:
            projected = to_money(spent_by_category.get(candidate_category, ZERO)) + candidate
            alert = _category_alert(candidate_category, projected, alloc.amount)
            if alert:
                alerts.append(alert)
        return alerts

    for alloc in budget.allocations:
        projected = to_money(spent_by_category.get(alloc.category, ZERO))
        alert = _category_alert(alloc.category, projected, alloc.amount)
        if alert:
            alerts.append(alert)
    return alerts


def over_allocation_alert(budget):
    """Info alert when allocations add up to more than the overall cap."""
    if budget is None or budget.monthly_total <= 0:
        return None
    allocated = budget.allocated_total
    if allocated > budget.monthly_total:
        return Alert(
            "info",
            f"Allocations ({format_money(allocated)}) exceed the budget total "
            f"({format_money(budget.monthly_total)})",
        )
    return None
