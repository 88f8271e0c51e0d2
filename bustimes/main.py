"""FastAPI application entry point."""

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bustimes.api import diagnostics, stops, vehicles
from bustimes.config import settings
from bustimes.core.errors import (
    ConfigurationError,
    DecodeError,
    FeedUnavailable,
    NotFoundError,
    SourceUnavailable,
    TransitError,
    UpstreamError,
)
from bustimes.core.feed_client import FeedClient
from bustimes.core.timetable import TimetableStore
from bustimes.core.transit_service import TransitService
from bustimes.db.session import async_session, engine
from bustimes.models.base import Base
from bustimes.models import tables  # noqa: F401

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
# Request URLs carry the feed credential
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    ConfigurationError: 503,
    UpstreamError: 502,
    DecodeError: 502,
    FeedUnavailable: 503,
    SourceUnavailable: 503,
}


def wire(service: TransitService | None) -> None:
    stops.service = service
    vehicles.service = service
    diagnostics.service = service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    feed = FeedClient()
    timetable = TimetableStore(async_session)
    service = TransitService(feed, timetable=timetable)
    wire(service)

    try:
        service.load_directory(settings.naptan_file)
    except SourceUnavailable:
        logger.exception("Failed to load stop directory - starting with no stops")

    try:
        await timetable.load(settings.gtfs_dir)
    except SourceUnavailable:
        logger.warning("No GTFS timetable at %s - scheduled departures disabled", settings.gtfs_dir)

    if not settings.bods_api_key:
        logger.warning("BODS_API_KEY is not set - live endpoints will return 503")
    logger.info("Bus times API started with %d stops", len(service.directory))

    yield

    await feed.close()
    await engine.dispose()
    logger.info("Bus times API shut down")


app = FastAPI(
    title="Bus Times",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TransitError)
async def transit_error_handler(request: Request, exc: TransitError):
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status >= 500:
        logger.warning("%s on %s: %s", exc.kind, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": exc.kind, "detail": str(exc)})


app.include_router(stops.router)
app.include_router(vehicles.router)
app.include_router(diagnostics.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "time": datetime.datetime.now(datetime.timezone.utc).isoformat()}
