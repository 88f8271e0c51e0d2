"""Tests for the GTFS static timetable store."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from bustimes.core.errors import SourceUnavailable
from bustimes.core.timetable import TimetableStore, time_to_seconds
from bustimes.db.session import create_engine
from bustimes.models.base import Base

GTFS_FILES = {
    "routes.txt": (
        "route_id,route_short_name,route_long_name\n"
        "R1,1,City Centre - Bretton\n"
        "R2,,Hampton Circular\n"
    ),
    "trips.txt": (
        "route_id,service_id,trip_id,trip_headsign\n"
        "R1,WK,T1,Bretton\n"
        "R1,WK,T2,Bretton\n"
        "R2,WK,T3,\n"
        "R1,WK,T4,Bretton\n"
    ),
    "stop_times.txt": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,0590AAA,1\n"
        "T2,08:20:00,08:20:30,0590AAA,1\n"
        "T3,08:10:00,08:10:00,0590AAA,4\n"
        "T4,07:50:00,07:50:00,0590AAA,1\n"
        "T1,08:15:00,08:15:00,0590ZZZ,2\n"
    ),
    "stops.txt": (
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "0590AAA,Queensgate,52.5741,-0.2435\n"
        "0590ZZZ,Bretton Centre,,\n"
    ),
}


def write_gtfs(directory):
    for name, content in GTFS_FILES.items():
        (directory / name).write_text(content, encoding="utf-8")


async def with_store(gtfs_dir, action):
    engine = create_engine("sqlite+aiosqlite://")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        store = TimetableStore(async_sessionmaker(engine, expire_on_commit=False))
        await store.load(gtfs_dir)
        return store, await action(store)
    finally:
        await engine.dispose()


def test_time_to_seconds():
    assert time_to_seconds("08:00:00") == 8 * 3600
    assert time_to_seconds("25:10:05") == 25 * 3600 + 10 * 60 + 5
    assert time_to_seconds("bad") is None
    assert time_to_seconds("08:xx:00") is None


def test_scheduled_departures_after_now(tmp_path):
    write_gtfs(tmp_path)
    now = 8 * 3600 - 60  # 07:59:00

    _, rows = asyncio.run(with_store(
        tmp_path, lambda store: store.scheduled_departures("0590AAA", now_seconds=now),
    ))

    assert [r.departure_time for r in rows] == ["08:00:00", "08:10:00", "08:20:30"]
    assert [r.due_minutes for r in rows] == [1, 11, 22]
    assert rows[0].route == "1"
    assert rows[0].destination == "Bretton"
    # No short name or headsign: raw route id and long name
    assert rows[1].route == "R2"
    assert rows[1].destination == "Hampton Circular"


def test_limit_is_applied_and_capped(tmp_path):
    write_gtfs(tmp_path)
    _, rows = asyncio.run(with_store(
        tmp_path, lambda store: store.scheduled_departures("0590AAA", now_seconds=0, limit=2),
    ))
    assert len(rows) == 2


def test_route_short_names(tmp_path):
    write_gtfs(tmp_path)

    async def noop(store):
        return None

    store, _ = asyncio.run(with_store(tmp_path, noop))
    assert store.loaded
    assert store.route_short_names() == {"R1": "1"}


def test_missing_directory_raises(tmp_path):
    store = TimetableStore(session_factory=None)
    with pytest.raises(SourceUnavailable):
        asyncio.run(store.load(tmp_path / "missing"))


def test_missing_file_raises(tmp_path):
    (tmp_path / "routes.txt").write_text(GTFS_FILES["routes.txt"])
    store = TimetableStore(session_factory=None)
    with pytest.raises(SourceUnavailable):
        asyncio.run(store.load(tmp_path))


def test_not_loaded_returns_empty():
    store = TimetableStore(session_factory=None)
    assert asyncio.run(store.scheduled_departures("0590AAA", now_seconds=0)) == []
