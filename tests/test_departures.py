"""Tests for the two-tier DepartureEstimator."""

import pytest

from bustimes.core.departures import (
    PLACEHOLDER,
    Departure,
    DepartureEstimator,
    due_text,
    round_minutes,
)
from bustimes.core.feed_client import (
    FeedSnapshot,
    StopTimeUpdate,
    TripUpdateEntry,
    VehiclePosition,
)
from bustimes.core.stop_directory import StopDirectory

NOW = 1_700_000_000.0

# 0.001° of latitude ≈ 111 m
STOP_LAT, STOP_LON = 52.5741, -0.2435


def make_directory() -> StopDirectory:
    return StopDirectory.load([
        {"AtcoCode": "0590AAA", "CommonName": "Queensgate",
         "Latitude": str(STOP_LAT), "Longitude": str(STOP_LON)},
        {"AtcoCode": "0590ZZZ", "CommonName": "Bretton Centre"},
        {"AtcoCode": "0590NOC", "CommonName": "Nowhere Lane"},
    ])


def trip(route_id, *stops, trip_id="T1") -> TripUpdateEntry:
    return TripUpdateEntry(
        trip_id=trip_id,
        route_id=route_id,
        stop_time_updates=[StopTimeUpdate(stop_id=s, time=t) for s, t in stops],
    )


def test_due_text():
    assert due_text(-3) == "DUE"
    assert due_text(0) == "DUE"
    assert due_text(1) == "1m"
    assert due_text(12) == "12m"


def test_round_half_up():
    assert round_minutes(4.5) == 5
    assert round_minutes(2.5) == 3
    assert round_minutes(-0.4) == 0
    assert round_minutes(-0.5) == 0


def test_due_text_follows_minutes():
    d = Departure(line="1", destination="X", minutes_until_due=4)
    assert d.due_text == "4m"
    assert Departure(line="1", destination="X", minutes_until_due=0).due_text == "DUE"


def test_trip_update_five_minutes_away():
    snapshot = FeedSnapshot(trip_updates=[
        trip("1", ("0590AAA", int(NOW) + 300), ("0590ZZZ", int(NOW) + 900)),
    ])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert len(rows) == 1
    assert rows[0].due_text == "5m"
    assert rows[0].line == "1"
    assert rows[0].destination == "Bretton Centre"


def test_just_passed_is_due():
    snapshot = FeedSnapshot(trip_updates=[trip("1", ("0590AAA", int(NOW) - 10))])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert rows[0].due_text == "DUE"


def test_unknown_destination_falls_back_to_code():
    snapshot = FeedSnapshot(trip_updates=[
        trip("1", ("0590AAA", int(NOW) + 60), ("9999UNKNOWN", int(NOW) + 600)),
    ])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert rows[0].destination == "9999UNKNOWN"


def test_route_short_name_used_for_line():
    snapshot = FeedSnapshot(trip_updates=[trip("PB:1a", ("0590AAA", int(NOW) + 60))])
    estimator = DepartureEstimator(make_directory(), route_names={"PB:1a": "1A"})
    assert estimator.estimate("0590AAA", snapshot, now=NOW)[0].line == "1A"


def test_untimed_updates_are_excluded():
    snapshot = FeedSnapshot(trip_updates=[
        trip("1", ("0590AAA", None), trip_id="T1"),
        trip("2", ("0590AAA", int(NOW) + 120), trip_id="T2"),
    ])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert [r.line for r in rows] == ["2"]


def test_sorted_and_capped():
    snapshot = FeedSnapshot(trip_updates=[
        trip(str(i), ("0590AAA", int(NOW) + 60 * m), trip_id=f"T{i}")
        for i, m in enumerate([9, 3, 7, 1, 12, 5, 2, 8])
    ])
    rows = DepartureEstimator(make_directory(), limit=6).estimate("0590AAA", snapshot, now=NOW)
    minutes = [r.minutes_until_due for r in rows]
    assert minutes == [1, 2, 3, 5, 7, 8]
    for r in rows:
        assert (r.due_text == "DUE") == (r.minutes_until_due <= 0)


def test_scheduled_rows_suppress_fallback():
    snapshot = FeedSnapshot(
        trip_updates=[trip("1", ("0590AAA", int(NOW) + 1200))],
        vehicles=[VehiclePosition(lat=STOP_LAT + 0.001, lon=STOP_LON, route_id="99", speed=5)],
    )
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert [r.line for r in rows] == ["1"]
    assert all(r.destination != PLACEHOLDER for r in rows)


def test_fallback_uses_nearby_vehicles():
    snapshot = FeedSnapshot(vehicles=[
        # ~1110 m away at 3.7 m/s -> 5 min
        VehiclePosition(lat=STOP_LAT + 0.01, lon=STOP_LON, route_id="5", speed=3.7),
        # ~555 m away with no speed -> 7 m/s default -> 1 min
        VehiclePosition(lat=STOP_LAT - 0.005, lon=STOP_LON, route_id="2"),
        # ~3.3 km away, out of range
        VehiclePosition(lat=STOP_LAT + 0.03, lon=STOP_LON, route_id="9", speed=10),
    ])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert [(r.line, r.minutes_until_due) for r in rows] == [("2", 1), ("5", 5)]
    assert all(r.destination == PLACEHOLDER for r in rows)


@pytest.mark.parametrize("speed", [0.0, float("nan"), float("inf"), -2.0])
def test_fallback_replaces_unusable_speed(speed):
    # ~840 m at the 7 m/s default -> 2 min
    snapshot = FeedSnapshot(vehicles=[
        VehiclePosition(lat=STOP_LAT + 0.00755, lon=STOP_LON, route_id="3", speed=speed),
    ])
    rows = DepartureEstimator(make_directory()).estimate("0590AAA", snapshot, now=NOW)
    assert rows[0].minutes_until_due == 2


def test_fallback_thresholds_are_overridable():
    snapshot = FeedSnapshot(vehicles=[
        VehiclePosition(lat=STOP_LAT + 0.03, lon=STOP_LON, route_id="9"),
    ])
    estimator = DepartureEstimator(make_directory(), proximity_m=5000, default_speed_mps=10)
    rows = estimator.estimate("0590AAA", snapshot, now=NOW)
    # ~3336 m at 10 m/s -> 6 min
    assert rows[0].minutes_until_due == 6


def test_stop_without_coordinates_gives_empty_board():
    snapshot = FeedSnapshot(vehicles=[VehiclePosition(lat=STOP_LAT, lon=STOP_LON, route_id="1")])
    assert DepartureEstimator(make_directory()).estimate("0590NOC", snapshot, now=NOW) == []


def test_unknown_stop_without_updates_gives_empty_board():
    snapshot = FeedSnapshot(vehicles=[VehiclePosition(lat=STOP_LAT, lon=STOP_LON, route_id="1")])
    assert DepartureEstimator(make_directory()).estimate("nope", snapshot, now=NOW) == []


def test_strategies_are_tried_in_order():
    calls = []
    estimator = DepartureEstimator(make_directory())

    def first(stop_code, snapshot, now):
        calls.append("first")
        return [Departure(line="A", destination="X", minutes_until_due=3)]

    def second(stop_code, snapshot, now):
        calls.append("second")
        return [Departure(line="B", destination="Y", minutes_until_due=1)]

    estimator.strategies = (first, second)
    rows = estimator.estimate("0590AAA", FeedSnapshot(), now=NOW)
    assert [r.line for r in rows] == ["A"]
    assert calls == ["first"]


def test_padded_stop_code_matches_trip_updates():
    snapshot = FeedSnapshot(
        trip_updates=[trip("1", ("0590AAA", int(NOW) + 600))],
        vehicles=[VehiclePosition(lat=STOP_LAT + 0.001, lon=STOP_LON, route_id="99")],
    )
    rows = DepartureEstimator(make_directory()).estimate(" 0590AAA ", snapshot, now=NOW)
    assert [(r.line, r.due_text) for r in rows] == [("1", "10m")]
