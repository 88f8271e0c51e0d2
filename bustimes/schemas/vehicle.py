from pydantic import BaseModel


class LiveVehicle(BaseModel):
    vehicle_id: str | None = None
    lat: float
    lon: float
    bearing: float | None = None
    speed: float | None = None
    timestamp: int | None = None
    route_id: str | None = None
    trip_id: str | None = None


class LiveVehicles(BaseModel):
    count: int
    vehicles: list[LiveVehicle]
