from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from db import log_error
from services.alert_service import check_expense, record_expense
from services.budget_service import export_period_csv, get_budget_status, set_budget
from services.errors import InvalidPeriod

router = APIRouter()


class AllocationIn(BaseModel):
    category: str
    amount: Decimal = Field(..., ge=0)


class BudgetIn(BaseModel):
    owner_id: str
    period_type: str = "monthly"
    month: Optional[str] = None          # YYYY-MM, monthly budgets
    period_start: Optional[str] = None   # YYYY-MM-DD, weekly/custom
    period_end: Optional[str] = None     # YYYY-MM-DD inclusive, custom
    monthly_total: Decimal = Field(Decimal("0"), ge=0)
    allocations: List[AllocationIn] = []
    budget_alert_threshold: Optional[float] = None
    rollover_enabled: bool = False


class ExpenseCheck(BaseModel):
    owner_id: str
    amount: Decimal = Field(..., ge=0)
    category: str
    date: Optional[str] = None


def _parse_as_of(as_of_date):
    if not as_of_date:
        return None
    try:
        return date.fromisoformat(as_of_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")


@router.post("/budget")
def save_budget(body: BudgetIn):
    try:
        budget, alerts = set_budget(
            body.owner_id,
            body.period_type,
            body.monthly_total,
            month=body.month,
            start=body.period_start,
            end=body.period_end,
            allocations=body.allocations,
            alert_threshold=body.budget_alert_threshold,
            rollover_enabled=body.rollover_enabled,
        )
    except (InvalidPeriod, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "budget": {
            "id": budget.id,
            "period_type": budget.period_type,
            "period_start": budget.period_start.isoformat(),
            "period_end": budget.period_end.isoformat(),
            "monthly_total": budget.monthly_total,
            "alert_threshold": budget.alert_threshold,
            "rollover_enabled": budget.rollover_enabled,
            "rollover_amount": budget.rollover_amount,
            "allocations": [
                {"category": a.category, "amount": a.amount} for a in budget.allocations
            ],
        },
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/budget/status")
def budget_status(
    owner_id: str = Query(...),
    period: Optional[str] = Query(None),
    as_of_date: Optional[str] = Query(None),
):
    """Spend vs. allocation for a period; percent values are not clamped."""
    today = _parse_as_of(as_of_date)
    try:
        return get_budget_status(owner_id, token=period, today=today)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log_error(f"Error computing budget status for owner={owner_id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Database error"})


@router.get("/budget/export")
def export_budget(owner_id: str = Query(...), month: str = Query(...)):
    try:
        filename, contents = export_period_csv(owner_id, token=month)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=contents,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/alerts/check")
def check_alerts(body: ExpenseCheck):
    """Alerts a candidate expense would trigger. Nothing is recorded."""
    on_date = _parse_as_of(body.date)
    alerts = check_expense(body.owner_id, body.amount, body.category, on_date=on_date)
    return {"alerts": [a.to_dict() for a in alerts]}


class ExpenseIn(BaseModel):
    owner_id: str
    description: str
    amount: Decimal = Field(..., ge=0)
    category: str = "Other"
    date: Optional[str] = None


@router.post("/expenses")
def add_expense(body: ExpenseIn):
    """Record an expense; alerts it triggers are sent to the notification sink and returned."""
    on_date = _parse_as_of(body.date)
    try:
        entry, alerts = record_expense(
            body.owner_id, body.description, body.amount, body.category, on_date=on_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "entry": {
            "id": entry.id,
            "description": entry.label,
            "amount": entry.amount,
            "category": entry.category,
            "date": entry.effective_date.isoformat(),
        },
        "alerts": [a.to_dict() for a in alerts],
    }
