from pydantic import BaseModel


class DepartureInfo(BaseModel):
    line: str
    destination: str
    due_text: str


class DepartureBoard(BaseModel):
    stop_code: str
    stop_name: str | None = None
    departures: list[DepartureInfo]


class ScheduledDepartureInfo(BaseModel):
    route: str
    destination: str
    departure_time: str
    due_minutes: int


class ScheduledBoard(BaseModel):
    stop_code: str
    source: str = "gtfs-scheduled"
    departures: list[ScheduledDepartureInfo]
