"""Facade over the stop directory, live feed and timetable used by the API layer."""

import logging
from pathlib import Path

from bustimes.config import settings
from bustimes.core.departures import Departure, DepartureEstimator
from bustimes.core.errors import NotFoundError
from bustimes.core.feed_client import FeedClient, VehiclePosition
from bustimes.core.geo import BoundingBox
from bustimes.core.live_vehicles import list_vehicles
from bustimes.core.stop_directory import (
    DEFAULT_LANDMARKS,
    RankingPolicy,
    Stop,
    StopDirectory,
    load_stop_directory,
)
from bustimes.core.timetable import ScheduledDeparture, TimetableStore

logger = logging.getLogger(__name__)


def default_region() -> BoundingBox:
    return BoundingBox(
        south=settings.region_south,
        north=settings.region_north,
        west=settings.region_west,
        east=settings.region_east,
    )


def default_policy() -> RankingPolicy:
    return RankingPolicy(home_region_token=settings.home_region, landmarks=DEFAULT_LANDMARKS)


class TransitService:
    """Answers stop searches, live vehicle lists and departure boards.

    Each feed-dependent call fetches exactly one snapshot. The directory is
    replaced wholesale on reload, so concurrent readers always see a complete one.
    """

    def __init__(
        self,
        feed: FeedClient,
        directory: StopDirectory | None = None,
        timetable: TimetableStore | None = None,
        region: BoundingBox | None = None,
        reference: tuple[float, float] | None = None,
        policy: RankingPolicy | None = None,
    ) -> None:
        self.feed = feed
        self.timetable = timetable
        self.policy = policy or default_policy()
        self.region = region or default_region()
        self.reference = reference or (settings.reference_lat, settings.reference_lon)
        self._directory = directory if directory is not None else StopDirectory([], policy=self.policy)

        self.search_limit = settings.stop_search_limit
        self.vehicle_limit = settings.live_vehicle_limit
        self.departure_limit = settings.departure_limit
        self.proximity_m = settings.fallback_proximity_m
        self.default_speed_mps = settings.fallback_speed_mps

    @property
    def directory(self) -> StopDirectory:
        return self._directory

    def load_directory(self, path: str | Path) -> StopDirectory:
        directory = load_stop_directory(path, policy=self.policy)
        self._directory = directory
        return directory

    def search_stops(self, query: str) -> list[Stop]:
        return self._directory.search(query, limit=self.search_limit, policy=self.policy)

    def get_stop(self, code: str) -> Stop:
        stop = self._directory.find_by_code(code)
        if stop is None:
            raise NotFoundError(f"Unknown stop code {code!r}")
        return stop

    async def list_live_vehicles(self, region: BoundingBox | None = None) -> list[VehiclePosition]:
        region = region or self.region
        snapshot = await self.feed.fetch_snapshot(region)
        # Ranked against the configured point only when it lies inside the requested area
        reference = self.reference if region.contains(*self.reference) else None
        return list_vehicles(snapshot.vehicles, region, reference=reference, limit=self.vehicle_limit)

    async def next_departures(self, stop_code: str, now: float | None = None) -> list[Departure]:
        snapshot = await self.feed.fetch_snapshot(self.region)
        estimator = DepartureEstimator(
            self._directory,
            route_names=self.timetable.route_short_names() if self.timetable else None,
            proximity_m=self.proximity_m,
            default_speed_mps=self.default_speed_mps,
            limit=self.departure_limit,
        )
        return estimator.estimate(stop_code, snapshot, now=now)

    async def scheduled_departures(self, stop_code: str, limit: int = 10) -> list[ScheduledDeparture]:
        if self.timetable is None:
            return []
        return await self.timetable.scheduled_departures(stop_code, limit=limit)

    def diagnostics(self) -> dict:
        return {
            "stops_loaded": len(self._directory),
            "timetable_loaded": bool(self.timetable and self.timetable.loaded),
            "region": {
                "south": self.region.south,
                "north": self.region.north,
                "west": self.region.west,
                "east": self.region.east,
            },
        }
