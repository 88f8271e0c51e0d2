"""GTFS static timetable tables, rebuilt wholesale on every load."""

from sqlalchemy import Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bustimes.models.base import Base


class GtfsRoute(Base):
    __tablename__ = "gtfs_routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    route_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    route_short_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    route_long_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class GtfsTrip(Base):
    __tablename__ = "gtfs_trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trip_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    route_id: Mapped[str] = mapped_column(String(64), nullable=False)
    service_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    trip_headsign: Mapped[str] = mapped_column(String(255), nullable=False, default="")


class GtfsStopTime(Base):
    __tablename__ = "gtfs_stop_times"
    __table_args__ = (
        Index("ix_gtfs_stop_times_stop_id", "stop_id"),
        Index("ix_gtfs_stop_times_trip_id", "trip_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trip_id: Mapped[str] = mapped_column(String(128), nullable=False)
    arrival_time: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    departure_time: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False)
    stop_sequence: Mapped[int] = mapped_column(Integer, nullable=True)


class GtfsStop(Base):
    __tablename__ = "gtfs_stops"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stop_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stop_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    stop_lat: Mapped[float] = mapped_column(Float, nullable=True)
    stop_lon: Mapped[float] = mapped_column(Float, nullable=True)
