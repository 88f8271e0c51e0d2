"""Departure board estimation for a single stop.

Two tiers are tried in order and the first one producing rows wins:

1. Trip updates from the feed that list the stop, timed by the provider.
2. Vehicles within a fixed radius of the stop, timed by distance / speed.

The second tier is only consulted when the first yields nothing at all.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from bustimes.core.feed_client import FeedSnapshot
from bustimes.core.geo import haversine_distance_m, is_valid_coordinate
from bustimes.core.stop_directory import StopDirectory

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"

DEFAULT_PROXIMITY_M = 2000.0
DEFAULT_SPEED_MPS = 7.0
DEFAULT_DEPARTURE_LIMIT = 6


def due_text(minutes: int) -> str:
    return "DUE" if minutes <= 0 else f"{minutes}m"


def round_minutes(value: float) -> int:
    """Round half up, so -0.5 min becomes 0 and 4.5 min becomes 5."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class Departure:
    line: str
    destination: str
    minutes_until_due: int = field(repr=False)

    @property
    def due_text(self) -> str:
        return due_text(self.minutes_until_due)


Strategy = Callable[[str, FeedSnapshot, float], list[Departure]]


class DepartureEstimator:
    """Builds the departure board for a stop from one feed snapshot."""

    def __init__(
        self,
        directory: StopDirectory,
        route_names: Mapping[str, str] | None = None,
        proximity_m: float = DEFAULT_PROXIMITY_M,
        default_speed_mps: float = DEFAULT_SPEED_MPS,
        limit: int = DEFAULT_DEPARTURE_LIMIT,
    ) -> None:
        self.directory = directory
        self.route_names = route_names or {}
        self.proximity_m = proximity_m
        self.default_speed_mps = default_speed_mps
        self.limit = limit
        self.strategies: tuple[Strategy, ...] = (
            self.from_trip_updates,
            self.from_nearby_vehicles,
        )

    def estimate(
        self,
        stop_code: str,
        snapshot: FeedSnapshot,
        now: float | None = None,
    ) -> list[Departure]:
        """Departures for `stop_code`, soonest first. `now` is epoch seconds."""
        now = time.time() if now is None else now
        stop_code = str(stop_code).strip()
        for strategy in self.strategies:
            rows = strategy(stop_code, snapshot, now)
            if rows:
                rows.sort(key=lambda d: d.minutes_until_due)
                logger.debug(
                    "Stop %s: %d departures from %s",
                    stop_code, len(rows), strategy.__name__,
                )
                return rows[:max(self.limit, 0)]
        return []

    def _line(self, route_id: str | None) -> str:
        if not route_id:
            return PLACEHOLDER
        return self.route_names.get(route_id) or route_id

    def from_trip_updates(
        self, stop_code: str, snapshot: FeedSnapshot, now: float,
    ) -> list[Departure]:
        now_ms = now * 1000
        rows = []
        for trip in snapshot.trip_updates:
            for update in trip.stop_time_updates:
                if update.stop_id != stop_code or update.time is None:
                    continue
                minutes = round_minutes((update.time * 1000 - now_ms) / 60000)
                rows.append(Departure(
                    line=self._line(trip.route_id),
                    destination=self._destination(trip.destination_stop_id),
                    minutes_until_due=minutes,
                ))
        return rows

    def _destination(self, stop_id: str | None) -> str:
        if not stop_id:
            return PLACEHOLDER
        stop = self.directory.find_by_code(stop_id)
        return stop.common_name if stop is not None else stop_id

    def from_nearby_vehicles(
        self, stop_code: str, snapshot: FeedSnapshot, now: float,
    ) -> list[Departure]:
        stop = self.directory.find_by_code(stop_code)
        if stop is None or not stop.has_coordinates:
            return []

        rows = []
        for v in snapshot.vehicles:
            if not is_valid_coordinate(v.lat, v.lon):
                continue
            dist_m = haversine_distance_m(stop.lat, stop.lon, v.lat, v.lon)
            if dist_m > self.proximity_m:
                continue
            speed = v.speed
            if speed is None or not math.isfinite(speed) or speed <= 0:
                speed = self.default_speed_mps
            rows.append(Departure(
                line=self._line(v.route_id),
                destination=PLACEHOLDER,
                minutes_until_due=round_minutes(dist_m / speed / 60),
            ))
        return rows
