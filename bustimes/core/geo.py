"""Distance and bounding-box helpers for raw feed coordinates."""

import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two lat/lon points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.asin(math.sqrt(min(1.0, a)))


def is_inside_bounding_box(
    lat: float, lon: float,
    south: float, north: float, west: float, east: float,
) -> bool:
    """Inclusive range check on all four bounds."""
    return south <= lat <= north and west <= lon <= east


def is_valid_coordinate(lat: float | None, lon: float | None) -> bool:
    return (
        lat is not None and lon is not None
        and math.isfinite(lat) and math.isfinite(lon)
    )


@dataclass(frozen=True)
class BoundingBox:
    south: float
    north: float
    west: float
    east: float

    def __post_init__(self) -> None:
        if self.south > self.north or self.west > self.east:
            raise ValueError(
                f"Invalid bounding box: south={self.south} north={self.north} "
                f"west={self.west} east={self.east}"
            )

    @classmethod
    def parse(cls, raw: str) -> "BoundingBox":
        """Parse 'south,north,west,east'."""
        parts = [p.strip() for p in str(raw).split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected 'south,north,west,east', got {raw!r}")
        south, north, west, east = (float(p) for p in parts)
        if not all(math.isfinite(v) for v in (south, north, west, east)):
            raise ValueError(f"Non-finite bounding box value in {raw!r}")
        return cls(south=south, north=north, west=west, east=east)

    def contains(self, lat: float, lon: float) -> bool:
        return is_inside_bounding_box(lat, lon, self.south, self.north, self.west, self.east)

    @property
    def centroid(self) -> tuple[float, float]:
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)

    def as_feed_filter(self) -> str:
        # Provider expects minLon,minLat,maxLon,maxLat
        return f"{self.west},{self.south},{self.east},{self.north}"
