import hmac
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse

import config
from db import log_error
from services.errors import PersistenceFailure, Unauthorized
from services.recurring_sync_service import sync_recurring
from services.rollover_service import process_rollover

router = APIRouter()


def check_bearer(authorization, secret):
    """Raise Unauthorized unless ``authorization`` is exactly ``Bearer <secret>``."""
    if not secret or not authorization:
        raise Unauthorized("Missing credentials")
    if not hmac.compare_digest(authorization.encode(), f"Bearer {secret}".encode()):
        raise Unauthorized("Invalid credentials")


def require_cron_secret(authorization: Optional[str] = Header(None)):
    """Reject the call before any processing unless it carries ``Bearer <CRON_SECRET>``."""
    try:
        check_bearer(authorization, config.CRON_SECRET)
    except Unauthorized as e:
        log_error(f"Rejected scheduled trigger: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _parse_as_of(as_of_date):
    if not as_of_date:
        return None
    try:
        return date.fromisoformat(as_of_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")


@router.get("/api/cron/process-recurring", dependencies=[Depends(require_cron_secret)])
def process_recurring(as_of_date: Optional[str] = Query(None)):
    """
    Materialize due recurring rules for every user.

    Returns the number of entries created and rules processed; any failed
    rule turns the response into a 500 that still carries the partial report.
    """
    today = _parse_as_of(as_of_date)
    try:
        report = sync_recurring(today=today)
    except PersistenceFailure as e:
        log_error(f"Cron recurring sync failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to process"})

    if not report.ok:
        return JSONResponse(status_code=500, content=report.to_dict())
    return report.to_dict()


@router.get("/api/cron/process-rollover", dependencies=[Depends(require_cron_secret)])
def process_rollover_trigger(as_of_date: Optional[str] = Query(None)):
    """Carry last month's leftover budgets into this month."""
    today = _parse_as_of(as_of_date)
    try:
        report = process_rollover(today=today)
    except PersistenceFailure as e:
        log_error(f"Cron rollover failed: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed"})

    if not report.ok:
        return JSONResponse(status_code=500, content=report.to_dict())
    return report.to_dict()
