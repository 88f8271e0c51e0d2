"""Live vehicle REST API endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from bustimes.core.geo import BoundingBox
from bustimes.schemas.vehicle import LiveVehicle, LiveVehicles

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])

# Will be set by main.py
service = None


@router.get("", response_model=LiveVehicles)
async def list_vehicles(bbox: str | None = None):
    """Vehicles inside bbox=south,north,west,east, closest to the map centre first."""
    if service is None:
        return LiveVehicles(count=0, vehicles=[])
    region = None
    if bbox:
        try:
            region = BoundingBox.parse(bbox)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    vehicles = await service.list_live_vehicles(region)
    return LiveVehicles(
        count=len(vehicles),
        vehicles=[LiveVehicle(**asdict(v)) for v in vehicles],
    )
