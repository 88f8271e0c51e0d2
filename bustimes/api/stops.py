"""Stop search and per-stop departure endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query

from bustimes.schemas.departure import (
    DepartureBoard,
    DepartureInfo,
    ScheduledBoard,
    ScheduledDepartureInfo,
)
from bustimes.schemas.stop import StopInfo

router = APIRouter(prefix="/api/stops", tags=["stops"])

# Will be set by main.py
service = None


@router.get("", response_model=list[StopInfo])
async def search_stops(q: str = ""):
    """Ranked stop search. An empty query returns no stops."""
    if service is None:
        return []
    return [StopInfo(**asdict(s)) for s in service.search_stops(q)]


@router.get("/{code}", response_model=StopInfo)
async def get_stop(code: str):
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return StopInfo(**asdict(service.get_stop(code)))


@router.get("/{code}/departures", response_model=DepartureBoard)
async def get_departures(code: str):
    """Live departure board for a stop."""
    if service is None:
        return DepartureBoard(stop_code=code, stop_name=None, departures=[])
    departures = await service.next_departures(code)
    stop = service.directory.find_by_code(code)
    return DepartureBoard(
        stop_code=code,
        stop_name=stop.common_name if stop else None,
        departures=[
            DepartureInfo(line=d.line, destination=d.destination, due_text=d.due_text)
            for d in departures
        ],
    )


@router.get("/{code}/timetable", response_model=ScheduledBoard)
async def get_timetable(code: str, limit: int = Query(10, ge=1, le=25)):
    """Next departures from the static GTFS timetable."""
    if service is None:
        return ScheduledBoard(stop_code=code, departures=[])
    scheduled = await service.scheduled_departures(code, limit=limit)
    return ScheduledBoard(
        stop_code=code,
        departures=[
            ScheduledDepartureInfo(
                route=d.route,
                destination=d.destination,
                departure_time=d.departure_time,
                due_minutes=d.due_minutes,
            )
            for d in scheduled
        ],
    )
