"""GET /v1/schedule/dates - Collection sheet column dates"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query

from collection_gateway.api.v1.schemas import ScheduleResponse
from collection_gateway.domain.schedule import ScheduleMode, generate_collection_dates

router = APIRouter()


@router.get("/schedule/dates", response_model=ScheduleResponse)
def get_schedule_dates(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    mode: ScheduleMode = Query(ScheduleMode.WEEKLY),
    weekday: Optional[str] = Query(None, description="Collection weekday for weekly sheets"),
):
    """
    Column dates for one month.

    Daily sheets skip Fridays, weekly sheets use every occurrence of the
    collection weekday (Saturday unless given), monthly sheets use the first
    non-Friday day.
    """
    try:
        dates = generate_collection_dates(mode, year, month, weekday)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ScheduleResponse(mode=mode, year=year, month=month, dates=dates)
