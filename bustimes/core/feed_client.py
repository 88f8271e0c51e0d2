"""Async client for the GTFS-realtime bus feed (Bus Open Data Service)."""

import logging
import math
from dataclasses import dataclass, field

import httpx
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2

from bustimes.config import settings
from bustimes.core.errors import (
    ConfigurationError,
    DecodeError,
    FeedUnavailable,
    UpstreamError,
)
from bustimes.core.geo import BoundingBox

logger = logging.getLogger(__name__)

# Characters of an error body kept for diagnostics
BODY_EXCERPT_CHARS = 200


@dataclass
class VehiclePosition:
    lat: float
    lon: float
    vehicle_id: str | None = None
    bearing: float | None = None
    speed: float | None = None  # m/s
    timestamp: int | None = None  # epoch seconds
    route_id: str | None = None
    trip_id: str | None = None


@dataclass
class StopTimeUpdate:
    stop_id: str
    time: int | None = None  # arrival, else departure, epoch seconds


@dataclass
class TripUpdateEntry:
    trip_id: str | None
    route_id: str | None
    stop_time_updates: list[StopTimeUpdate] = field(default_factory=list)

    @property
    def destination_stop_id(self) -> str | None:
        """The last stop-time update is the trip's destination."""
        if not self.stop_time_updates:
            return None
        return self.stop_time_updates[-1].stop_id


@dataclass
class FeedSnapshot:
    vehicles: list[VehiclePosition] = field(default_factory=list)
    trip_updates: list[TripUpdateEntry] = field(default_factory=list)
    feed_timestamp: int | None = None


def _optional(msg, name: str):
    return getattr(msg, name) if msg.HasField(name) else None


def _vehicle_from_entity(entity) -> VehiclePosition | None:
    v = entity.vehicle
    if not v.HasField("position"):
        return None
    pos = v.position
    lat = _optional(pos, "latitude")
    lon = _optional(pos, "longitude")
    if lat is None or lon is None or not (math.isfinite(lat) and math.isfinite(lon)):
        return None

    speed = _optional(pos, "speed")
    bearing = _optional(pos, "bearing")
    vehicle_id = None
    if v.HasField("vehicle"):
        vehicle_id = v.vehicle.id or v.vehicle.label or None
    route_id = trip_id = None
    if v.HasField("trip"):
        route_id = v.trip.route_id or None
        trip_id = v.trip.trip_id or None

    return VehiclePosition(
        lat=float(lat),
        lon=float(lon),
        vehicle_id=vehicle_id or entity.id or None,
        bearing=float(bearing) if bearing is not None else None,
        speed=float(speed) if speed is not None else None,
        timestamp=_optional(v, "timestamp"),
        route_id=route_id,
        trip_id=trip_id,
    )


def _event_time(stu, name: str) -> int | None:
    if not stu.HasField(name):
        return None
    event = getattr(stu, name)
    if not event.HasField("time") or event.time <= 0:
        return None
    return event.time


def _trip_update_from_entity(entity) -> tuple[TripUpdateEntry, int]:
    tu = entity.trip_update
    entry = TripUpdateEntry(
        trip_id=tu.trip.trip_id or None,
        route_id=tu.trip.route_id or None,
    )
    skipped = 0
    for stu in tu.stop_time_update:
        if not stu.stop_id:
            skipped += 1
            continue
        t = _event_time(stu, "arrival")
        if t is None:
            t = _event_time(stu, "departure")
        entry.stop_time_updates.append(StopTimeUpdate(stop_id=stu.stop_id, time=t))
    return entry, skipped


def decode_feed(payload: bytes) -> FeedSnapshot:
    """Decode GTFS-realtime bytes into vehicle and trip-update records.

    A payload that does not parse raises DecodeError. Individual entities missing
    required data are skipped.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(payload)
    except ProtobufDecodeError as e:
        raise DecodeError(f"Feed payload is not a GTFS-realtime message: {e}") from e

    snapshot = FeedSnapshot(feed_timestamp=_optional(feed.header, "timestamp"))
    skipped = 0
    for entity in feed.entity:
        if entity.HasField("vehicle"):
            vehicle = _vehicle_from_entity(entity)
            if vehicle is None:
                skipped += 1
            else:
                snapshot.vehicles.append(vehicle)
        if entity.HasField("trip_update"):
            entry, bad_updates = _trip_update_from_entity(entity)
            skipped += bad_updates
            snapshot.trip_updates.append(entry)

    if skipped:
        logger.debug("Skipped %d malformed feed records", skipped)
    logger.debug(
        "Decoded feed: %d vehicles, %d trip updates",
        len(snapshot.vehicles), len(snapshot.trip_updates),
    )
    return snapshot


class FeedClient:
    """Fetches one fresh feed snapshot per call. No caching, no retries."""

    def __init__(
        self,
        api_key: str | None = None,
        feed_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = settings.bods_api_key if api_key is None else api_key
        self._client = httpx.AsyncClient(
            timeout=settings.feed_timeout_seconds if timeout is None else timeout,
            headers={"Accept": "application/x-protobuf, application/octet-stream"},
            transport=transport,
        )
        self._feed_url = feed_url or settings.feed_url

    async def close(self) -> None:
        await self._client.aclose()

    def _scrub(self, text: str) -> str:
        if self._api_key:
            text = text.replace(self._api_key, "***")
        return text

    async def fetch_snapshot(self, region: BoundingBox | None = None) -> FeedSnapshot:
        if not self._api_key:
            raise ConfigurationError("Feed credential (BODS_API_KEY) is not configured")

        params = {"api_key": self._api_key}
        if region is not None:
            params["boundingBox"] = region.as_feed_filter()

        try:
            resp = await self._client.get(self._feed_url, params=params)
        except httpx.HTTPError as e:
            logger.error("Feed request failed: %s", type(e).__name__)
            raise FeedUnavailable(
                f"Feed request failed: {type(e).__name__}: {self._scrub(str(e))}"
            ) from e

        if not resp.is_success:
            excerpt = self._scrub(resp.text)[:BODY_EXCERPT_CHARS]
            logger.warning("Feed provider returned HTTP %d", resp.status_code)
            raise UpstreamError(resp.status_code, excerpt)

        snapshot = decode_feed(resp.content)
        logger.info(
            "Fetched feed snapshot: %d vehicles, %d trip updates",
            len(snapshot.vehicles), len(snapshot.trip_updates),
        )
        return snapshot
