"""Closest-first vehicle list for the live map."""

import logging
from typing import Iterable

from bustimes.core.feed_client import VehiclePosition
from bustimes.core.geo import BoundingBox, haversine_distance_m, is_valid_coordinate

logger = logging.getLogger(__name__)

DEFAULT_VEHICLE_LIMIT = 400


def list_vehicles(
    vehicles: Iterable[VehiclePosition],
    region: BoundingBox,
    reference: tuple[float, float] | None = None,
    limit: int = DEFAULT_VEHICLE_LIMIT,
) -> list[VehiclePosition]:
    """Vehicles inside `region`, nearest to `reference` (default: region centroid) first."""
    ref_lat, ref_lon = reference if reference is not None else region.centroid

    ranked: list[tuple[float, VehiclePosition]] = []
    for v in vehicles:
        if not is_valid_coordinate(v.lat, v.lon) or not region.contains(v.lat, v.lon):
            continue
        ranked.append((haversine_distance_m(ref_lat, ref_lon, v.lat, v.lon), v))

    ranked.sort(key=lambda item: item[0])
    result = [v for _, v in ranked[:max(limit, 0)]]
    logger.debug("%d vehicles in region, returning %d", len(ranked), len(result))
    return result
