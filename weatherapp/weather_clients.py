"""
Weather client.

API logic lives here, away from the FastAPI endpoints and the location
store, so both can share it and it can be tested in isolation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import httpx

from .errors import (
    HttpStatusError,
    InvalidInput,
    NetworkError,
    NotFound,
)
from .schemas import (
    Coordinates,
    CurrentWeather,
    DailyEntry,
    GeoCandidate,
    HourlyEntry,
    WeatherBundle,
    decode_current,
    decode_daily,
    decode_geocoding,
    decode_hourly,
)
from .settings import Settings

logger = logging.getLogger(__name__)


class OpenWeatherClient:
    """
    OpenWeatherMap wrapper.

    Endpoints used:
    - Geocoding:
        /geo/1.0/direct?q=...&limit=1&appid=KEY
    - Current weather:
        /data/2.5/weather?lat=...&lon=...&units=imperial&appid=KEY
    - Hourly forecast (pro host):
        /data/2.5/forecast/hourly?lat=...&lon=...&units=imperial&appid=KEY
    - Daily forecast:
        /data/2.5/forecast/daily?lat=...&lon=...&cnt=7&units=imperial&appid=KEY

    Every failure is raised as a WeatherError subclass; httpx and pydantic
    exceptions never leave this class.
    """

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 10.0,
        base: str = "https://api.openweathermap.org",
        pro_base: str = "https://pro.openweathermap.org",
        units: str = "imperial",
        daily_count: int = 7,
    ):
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.base = base.rstrip("/")
        self.pro_base = pro_base.rstrip("/")
        self.units = units
        self.daily_count = daily_count

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenWeatherClient":
        return cls(
            settings.openweather_api_key,
            timeout_s=settings.request_timeout_s,
            base=settings.openweather_base_url,
            pro_base=settings.openweather_pro_base_url,
            units=settings.units,
            daily_count=settings.daily_count,
        )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s)

    async def _get(self, client: httpx.AsyncClient, url: str, params: Dict[str, Any], endpoint: str) -> bytes:
        """GET and return the body of a 200 response."""
        params = {**params, "appid": self.api_key}
        logger.debug("GET %s (%s)", url, endpoint)
        try:
            r = await client.get(url, params=params)
        except (httpx.InvalidURL, UnicodeError) as e:
            raise InvalidInput(f"Could not build {endpoint} request: {e}") from e
        except httpx.TransportError as e:
            logger.warning("%s request failed: %s", endpoint, e.__class__.__name__)
            raise NetworkError(f"Could not reach the weather service ({endpoint}).") from e

        if r.status_code != 200:
            logger.warning("%s returned HTTP %d", endpoint, r.status_code)
            raise HttpStatusError(
                f"{endpoint.capitalize()} failed ({r.status_code}).",
                status_code=r.status_code,
                endpoint=endpoint,
            )
        return r.content

    def _coord_params(self, coords: Coordinates) -> Dict[str, Any]:
        return {"lat": coords.lat, "lon": coords.lon, "units": self.units}

    # ------------------------------------------------------------------
    # Geocoding
    # ------------------------------------------------------------------

    async def _geocode(self, client: httpx.AsyncClient, place_name: str) -> GeoCandidate:
        raw = (place_name or "").strip()
        if not raw:
            raise InvalidInput("Please enter a place name.")
        try:
            raw.encode("utf-8")
        except UnicodeEncodeError as e:
            raise InvalidInput("Place name contains characters that cannot be sent.") from e

        body = await self._get(
            client,
            f"{self.base}/geo/1.0/direct",
            {"q": raw, "limit": 1},
            "geocoding",
        )
        results = decode_geocoding(body)
        if not results:
            raise NotFound(f"Location not found: {raw}")
        return results[0]

    async def geocode(self, place_name: str) -> GeoCandidate:
        """Resolve a free-text place name to its best match."""
        async with self._http() as client:
            return await self._geocode(client, place_name)

    # ------------------------------------------------------------------
    # Weather data
    # ------------------------------------------------------------------

    async def _current(self, client: httpx.AsyncClient, coords: Coordinates) -> CurrentWeather:
        body = await self._get(
            client, f"{self.base}/data/2.5/weather", self._coord_params(coords), "current weather"
        )
        return decode_current(body)

    async def _hourly(self, client: httpx.AsyncClient, coords: Coordinates) -> List[HourlyEntry]:
        body = await self._get(
            client, f"{self.pro_base}/data/2.5/forecast/hourly", self._coord_params(coords), "hourly forecast"
        )
        return decode_hourly(body)

    async def _daily(self, client: httpx.AsyncClient, coords: Coordinates) -> List[DailyEntry]:
        params = {**self._coord_params(coords), "cnt": self.daily_count}
        body = await self._get(client, f"{self.base}/data/2.5/forecast/daily", params, "daily forecast")
        return decode_daily(body)

    async def current_weather(self, coords: Coordinates) -> CurrentWeather:
        async with self._http() as client:
            return await self._current(client, coords)

    async def hourly_forecast(self, coords: Coordinates) -> List[HourlyEntry]:
        async with self._http() as client:
            return await self._hourly(client, coords)

    async def daily_forecast(self, coords: Coordinates) -> List[DailyEntry]:
        async with self._http() as client:
            return await self._daily(client, coords)

    async def fetch_weather(self, place_name: str) -> WeatherBundle:
        """
        Geocode, then fetch current / hourly / daily concurrently.

        All three must succeed. On the first failure the remaining requests
        are cancelled and that failure is raised, so callers never see a
        partial bundle.
        """
        async with self._http() as client:
            location = await self._geocode(client, place_name)
            coords = location.coordinates

            tasks = [
                asyncio.ensure_future(self._current(client, coords)),
                asyncio.ensure_future(self._hourly(client, coords)),
                asyncio.ensure_future(self._daily(client, coords)),
            ]
            try:
                current, hourly, daily = await asyncio.gather(*tasks)
            except BaseException:
                for t in tasks:
                    t.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        logger.debug(
            "Fetched weather for %s (%d hourly, %d daily)",
            location.display_name, len(hourly), len(daily),
        )
        return WeatherBundle(location=location, current=current, hourly=hourly, daily=daily)

