from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from services.errors import InvalidPeriod, PersistenceFailure
from services.forecast_dto import ForecastResponseDTO
from services.forecast_service import get_forecast

router = APIRouter()


@router.get("/forecast")
def get_period_forecast(
    owner_id: str = Query(...),
    period: Optional[str] = Query(None),
    as_of_date: Optional[str] = Query(None),
):
    """
    Return the "safe to spend" forecast for a budget period.

    Query Parameters:
        owner_id: Whose budget and ledger to read.
        period (optional): YYYY-MM, a week start YYYY-MM-DD, or
                           YYYY-MM-DD..YYYY-MM-DD. Defaults to the period
                           covering the reference date.
        as_of_date (optional): Reference date in ISO format (YYYY-MM-DD).
                              Defaults to today (UTC) if not provided.

    Read-only. ``safe_to_spend`` may be negative.
    """
    # Parse optional as_of_date parameter
    if as_of_date:
        try:
            as_of = date.fromisoformat(as_of_date)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")
    else:
        as_of = None

    try:
        forecast = get_forecast(owner_id, token=period, today=as_of)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure:
        return JSONResponse(status_code=500, content={"error": "Database error"})

    # Convert to JSON-serializable DTO
    return asdict(ForecastResponseDTO.from_forecast(forecast))
