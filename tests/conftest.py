import time

import httpx
import pytest
from google.transit import gtfs_realtime_pb2


def build_feed(vehicles=(), trip_updates=(), timestamp: int | None = None) -> bytes:
    """Serialize a GTFS-realtime FeedMessage.

    vehicles: dicts with id, lat, lon and optional speed/bearing/route_id/trip_id.
      A vehicle without lat/lon is written with no position at all.
    trip_updates: dicts with trip_id, route_id and stops=[(stop_id, epoch or None)].
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = int(time.time()) if timestamp is None else timestamp

    for i, v in enumerate(vehicles):
        entity = feed.entity.add()
        entity.id = f"veh-{i}"
        vp = entity.vehicle
        vp.vehicle.id = v.get("id", f"bus-{i}")
        if v.get("lat") is not None and v.get("lon") is not None:
            vp.position.latitude = v["lat"]
            vp.position.longitude = v["lon"]
            if v.get("speed") is not None:
                vp.position.speed = v["speed"]
            if v.get("bearing") is not None:
                vp.position.bearing = v["bearing"]
        if v.get("route_id"):
            vp.trip.route_id = v["route_id"]
        if v.get("trip_id"):
            vp.trip.trip_id = v["trip_id"]

    for i, tu in enumerate(trip_updates):
        entity = feed.entity.add()
        entity.id = f"trip-{i}"
        update = entity.trip_update
        update.trip.trip_id = tu.get("trip_id", f"T{i}")
        if tu.get("route_id"):
            update.trip.route_id = tu["route_id"]
        for stop_id, epoch in tu.get("stops", []):
            stu = update.stop_time_update.add()
            stu.stop_id = stop_id
            if epoch is not None:
                stu.arrival.time = epoch

    return feed.SerializeToString()


def feed_transport(payload: bytes = b"", status_code: int = 200, calls: list | None = None):
    """MockTransport answering every request with the same payload."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, content=payload)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_feed():
    return build_feed


@pytest.fixture
def make_transport():
    return feed_transport
