from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from db import get_db
from models.recurring_rule import VariableAmount
from repositories.ledger_repository import list_entries_for_rule
from repositories.recurring_repository import add_rule, get_rule_by_id, set_active
from services.errors import NotFound, PersistenceFailure
from services.recurring_sync_service import record_observed_amount, sync_recurring

router = APIRouter()


class RuleCreate(BaseModel):
    owner_id: str
    label: str
    amount: Decimal = Field(..., ge=0)
    frequency: str
    start_date: date
    category: str = "Other"
    is_variable: bool = False
    day_of_period: Optional[int] = Field(None, ge=0, le=31)
    active: bool = True


class ObservedAmount(BaseModel):
    amount: Decimal = Field(..., ge=0)


class ActiveFlag(BaseModel):
    active: bool


def _rule_to_dict(rule):
    return {
        "id": rule.id,
        "owner_id": rule.owner_id,
        "label": rule.label,
        "amount": rule.resolved_amount,
        "is_variable": isinstance(rule.amount, VariableAmount),
        "category": rule.category,
        "frequency": rule.frequency,
        "start_date": rule.start_date.isoformat(),
        "day_of_period": rule.day_of_period,
        "active": rule.active,
        "next_due_date": rule.next_due_date.isoformat() if rule.next_due_date else None,
    }


def _parse_as_of(as_of_date):
    if not as_of_date:
        return None
    try:
        return date.fromisoformat(as_of_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")


@router.post("/recurring")
def create_rule(body: RuleCreate):
    conn = get_db()
    try:
        rule = add_rule(
            conn,
            body.owner_id,
            body.label,
            body.amount,
            body.frequency,
            body.start_date,
            category=body.category,
            is_variable=body.is_variable,
            day_of_period=body.day_of_period,
            active=body.active,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        conn.close()

    return {"rule": _rule_to_dict(rule)}


@router.post("/recurring/sync")
def sync_my_recurring(owner_id: str = Query(...), as_of_date: Optional[str] = Query(None)):
    """Interactive catch-up for one user's rules."""
    today = _parse_as_of(as_of_date)
    try:
        report = sync_recurring(owner_id=owner_id, today=today)
    except PersistenceFailure:
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to sync recurring expenses"})
    if not report.ok:
        return JSONResponse(status_code=500, content=report.to_dict())
    return report.to_dict()


@router.post("/recurring/{rule_id}/amount")
def update_observed_amount(rule_id: int, body: ObservedAmount):
    """Record the latest charge of a variable-amount rule; later syncs and forecasts use it."""
    try:
        rule = record_observed_amount(rule_id, body.amount)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"rule": _rule_to_dict(rule)}


@router.post("/recurring/{rule_id}/active")
def toggle_rule(rule_id: int, body: ActiveFlag):
    """Pause or resume a rule. Paused rules are skipped by sync and forecasts."""
    conn = get_db()
    try:
        set_active(conn, rule_id, body.active)
        rule = get_rule_by_id(conn, rule_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    finally:
        conn.close()

    return {"rule": _rule_to_dict(rule)}


@router.get("/recurring/{rule_id}/entries")
def rule_entries(rule_id: int):
    """Ledger entries materialized from one rule, oldest first."""
    conn = get_db()
    try:
        if get_rule_by_id(conn, rule_id) is None:
            raise HTTPException(status_code=404, detail=f"Recurring rule {rule_id} not found")
        entries = list_entries_for_rule(conn, rule_id)
    finally:
        conn.close()

    return {
        "count": len(entries),
        "entries": [
            {
                "id": e.id,
                "description": e.label,
                "amount": e.amount,
                "category": e.category,
                "date": e.effective_date.isoformat(),
            }
            for e in entries
        ],
    }
