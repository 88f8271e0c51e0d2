"""Scheduled departures from a static GTFS timetable held in SQL."""

import csv
import datetime
import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import delete, insert, select

from bustimes.core.departures import round_minutes
from bustimes.core.errors import SourceUnavailable
from bustimes.models.tables import GtfsRoute, GtfsStop, GtfsStopTime, GtfsTrip

logger = logging.getLogger(__name__)

MAX_SCHEDULED_LIMIT = 25
_INSERT_BATCH = 5000


@dataclass
class ScheduledDeparture:
    route: str
    destination: str
    departure_time: str
    due_minutes: int
    departure_seconds: int


def time_to_seconds(raw: str) -> int | None:
    """Parse GTFS 'HH:MM:SS' (hours may run past 24) to seconds after midnight."""
    parts = str(raw).strip().split(":")
    if len(parts) != 3:
        return None
    try:
        h, m, s = (int(p) for p in parts)
    except ValueError:
        return None
    return h * 3600 + m * 60 + s


def seconds_since_midnight(now: datetime.datetime | None = None) -> int:
    now = now or datetime.datetime.now()
    return now.hour * 3600 + now.minute * 60 + now.second


def _float_or_none(raw: str | None) -> float | None:
    try:
        return float(raw) if raw not in (None, "") else None
    except ValueError:
        return None


def _int_or_none(raw: str | None) -> int | None:
    try:
        return int(raw) if raw not in (None, "") else None
    except ValueError:
        return None


def _read_gtfs(gtfs_dir: Path, filename: str) -> list[dict[str, str]]:
    path = gtfs_dir / filename
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            return list(csv.DictReader(f))
    except OSError as e:
        raise SourceUnavailable(f"GTFS file {path} is not readable: {e.strerror or e}") from e


class TimetableStore:
    """Loads GTFS routes/trips/stop_times/stops and answers next scheduled buses."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory
        self.loaded = False
        self._route_names: dict[str, str] = {}

    async def load(self, gtfs_dir: str | Path) -> int:
        """Replace the stored timetable. Returns the number of stop times loaded."""
        gtfs_dir = Path(gtfs_dir)
        if not gtfs_dir.is_dir():
            raise SourceUnavailable(f"GTFS directory {gtfs_dir} does not exist")

        routes = _read_gtfs(gtfs_dir, "routes.txt")
        trips = _read_gtfs(gtfs_dir, "trips.txt")
        stop_times = _read_gtfs(gtfs_dir, "stop_times.txt")
        stops = _read_gtfs(gtfs_dir, "stops.txt")

        route_rows = [
            {
                "route_id": r.get("route_id", ""),
                "route_short_name": r.get("route_short_name") or "",
                "route_long_name": r.get("route_long_name") or "",
            }
            for r in routes
        ]
        trip_rows = [
            {
                "trip_id": t.get("trip_id", ""),
                "route_id": t.get("route_id", ""),
                "service_id": t.get("service_id") or "",
                "trip_headsign": t.get("trip_headsign") or "",
            }
            for t in trips
        ]
        stop_time_rows = [
            {
                "trip_id": st.get("trip_id", ""),
                "arrival_time": st.get("arrival_time") or "",
                "departure_time": st.get("departure_time") or "",
                "stop_id": st.get("stop_id", ""),
                "stop_sequence": _int_or_none(st.get("stop_sequence")),
            }
            for st in stop_times
        ]
        stop_rows = [
            {
                "stop_id": s.get("stop_id", ""),
                "stop_name": s.get("stop_name") or "",
                "stop_lat": _float_or_none(s.get("stop_lat")),
                "stop_lon": _float_or_none(s.get("stop_lon")),
            }
            for s in stops
        ]

        async with self.session_factory() as session:
            async with session.begin():
                for table in (GtfsStopTime, GtfsTrip, GtfsRoute, GtfsStop):
                    await session.execute(delete(table))
                for table, rows in (
                    (GtfsRoute, route_rows),
                    (GtfsTrip, trip_rows),
                    (GtfsStop, stop_rows),
                    (GtfsStopTime, stop_time_rows),
                ):
                    for i in range(0, len(rows), _INSERT_BATCH):
                        await session.execute(insert(table), rows[i:i + _INSERT_BATCH])

        self._route_names = {
            r["route_id"]: r["route_short_name"]
            for r in route_rows
            if r["route_id"] and r["route_short_name"]
        }
        self.loaded = True
        logger.info(
            "Loaded GTFS timetable: %d routes, %d trips, %d stop times, %d stops",
            len(route_rows), len(trip_rows), len(stop_time_rows), len(stop_rows),
        )
        return len(stop_time_rows)

    def route_short_names(self) -> dict[str, str]:
        return dict(self._route_names)

    async def scheduled_departures(
        self,
        stop_id: str,
        now_seconds: int | None = None,
        limit: int = 10,
    ) -> list[ScheduledDeparture]:
        """Next scheduled departures at or after `now_seconds` (seconds after midnight)."""
        if not self.loaded:
            return []
        now_seconds = seconds_since_midnight() if now_seconds is None else now_seconds
        limit = max(0, min(limit, MAX_SCHEDULED_LIMIT))

        stmt = (
            select(
                GtfsStopTime.departure_time,
                GtfsTrip.route_id,
                GtfsTrip.trip_headsign,
                GtfsRoute.route_short_name,
                GtfsRoute.route_long_name,
            )
            .join(GtfsTrip, GtfsTrip.trip_id == GtfsStopTime.trip_id)
            .join(GtfsRoute, GtfsRoute.route_id == GtfsTrip.route_id)
            .where(GtfsStopTime.stop_id == stop_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        upcoming = []
        for row in rows:
            dep_sec = time_to_seconds(row.departure_time)
            if dep_sec is None or dep_sec < now_seconds:
                continue
            upcoming.append(ScheduledDeparture(
                route=row.route_short_name or row.route_id,
                destination=row.trip_headsign or row.route_long_name or "",
                departure_time=row.departure_time,
                due_minutes=max(0, round_minutes((dep_sec - now_seconds) / 60)),
                departure_seconds=dep_sec,
            ))
        upcoming.sort(key=lambda d: d.departure_seconds)
        return upcoming[:limit]
