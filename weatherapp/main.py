"""
FastAPI entrypoint.

This file focuses on:
- routing
- request/response handling
- wiring together storage + clients

Screens are not served from here; a front end consumes the JSON API.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from .crud import LocationStore
from .db import make_engine, make_session_factory
from .errors import (
    CapacityExceeded,
    DuplicateLocation,
    InvalidInput,
    NotFound,
    WeatherError,
)
from .repository import LocationRepository
from .schemas import LocationCreate
from .settings import get_settings
from .state import WeatherSnapshot, WeatherState
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

HOURLY_DISPLAY_LIMIT = 24


def weather_error_status(e: WeatherError) -> int:
    """Pick the HTTP status for a weather failure."""
    if isinstance(e, InvalidInput):
        return 400
    if isinstance(e, NotFound):
        return 404
    # Upstream trouble: bad status, transport failure, unreadable payload
    return 502


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.title = settings.app_name

    engine = make_engine(settings.sqlite_path)
    client = OpenWeatherClient.from_settings(settings)
    repository = LocationRepository(make_session_factory(engine), capacity=settings.max_saved_locations)

    app.state.client = client
    app.state.weather = WeatherState(client, default_location=settings.default_location)
    app.state.store = LocationStore(repository, client, capacity=settings.max_saved_locations)
    logger.info("Loaded %d saved location(s) from %s", len(repository.load()), settings.sqlite_path)

    # Fill in coordinates for places saved before they could be resolved.
    reconcile = asyncio.create_task(app.state.store.reconcile_missing_coordinates())
    try:
        yield
    finally:
        if not reconcile.done():
            reconcile.cancel()
        engine.dispose()


app = FastAPI(title="Weather App", lifespan=lifespan)


def get_client(request: Request) -> OpenWeatherClient:
    return request.app.state.client


def get_store(request: Request) -> LocationStore:
    return request.app.state.store


def get_state(request: Request) -> WeatherState:
    return request.app.state.weather


# -------------------------
# Weather
# -------------------------

@app.get("/api/weather")
async def api_weather(
    q: str = Query(..., min_length=1, max_length=255),
    client: OpenWeatherClient = Depends(get_client),
):
    """
    Current conditions, the next 24 hours and the week ahead for a place.
    """
    try:
        bundle = await client.fetch_weather(q)
    except WeatherError as e:
        raise HTTPException(status_code=weather_error_status(e), detail=str(e))

    return {
        "location": {
            **bundle.location.model_dump(),
            "display_name": bundle.location.display_name,
            "coordinates": bundle.location.coordinates.display,
        },
        "current": bundle.current.model_dump(mode="json"),
        "hourly": [h.model_dump(mode="json") for h in bundle.next_hours(HOURLY_DISPLAY_LIMIT)],
        "daily": [d.model_dump(mode="json") for d in bundle.daily],
    }


# -------------------------
# Displayed weather
# -------------------------

def _snapshot_payload(snap: WeatherSnapshot) -> dict:
    return {
        "location": snap.location,
        "current": snap.current.model_dump(mode="json") if snap.current is not None else None,
        "hourly": [h.model_dump(mode="json") for h in snap.hourly[:HOURLY_DISPLAY_LIMIT]],
        "daily": [d.model_dump(mode="json") for d in snap.daily],
        "is_loading": snap.is_loading,
        "error_message": snap.error_message,
    }


@app.get("/api/state")
def api_state(state: WeatherState = Depends(get_state)):
    """What the screen currently shows for the selected place."""
    return _snapshot_payload(state.snapshot)


@app.post("/api/state/refresh")
async def api_refresh_state(
    q: str = Query(..., min_length=1, max_length=255),
    state: WeatherState = Depends(get_state),
):
    """
    Select a place and refresh the displayed weather.

    Failures are reported in error_message and the previous data is kept.
    """
    snap = await state.refresh(q)
    return _snapshot_payload(snap)


# -------------------------
# Saved locations
# -------------------------

@app.get("/api/locations")
def api_list_locations(store: LocationStore = Depends(get_store)):
    """List saved places in the order they were added."""
    return [loc.model_dump() for loc in store.list_locations()]


@app.post("/api/locations", status_code=201)
async def api_add_location(payload: LocationCreate, store: LocationStore = Depends(get_store)):
    """Geocode and save a place."""
    try:
        loc = await store.add_location(payload.name)
    except (DuplicateLocation, CapacityExceeded) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except WeatherError as e:
        raise HTTPException(status_code=weather_error_status(e), detail=str(e))
    return loc.model_dump()


@app.post("/api/locations/reconcile")
async def api_reconcile_locations(store: LocationStore = Depends(get_store)):
    """Resolve coordinates for saved places that are missing them."""
    filled = await store.reconcile_missing_coordinates()
    return {"filled": filled}


@app.delete("/api/locations/{location_id}")
async def api_delete_location(location_id: str, store: LocationStore = Depends(get_store)):
    """Remove a saved place. Unknown ids are not an error."""
    await store.remove_location(location_id)
    return {"ok": True}
