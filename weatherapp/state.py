"""
Displayed-weather state.

Holds what a screen shows for the selected place as immutable snapshots.
Observers are called with every new snapshot. Starting a refresh cancels
one still in flight, so a slow older fetch can never overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

from .errors import WeatherError
from .schemas import CurrentWeather, DailyEntry, HourlyEntry
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

Observer = Callable[["WeatherSnapshot"], None]


@dataclass(frozen=True)
class WeatherSnapshot:
    location: str
    current: Optional[CurrentWeather] = None
    hourly: Tuple[HourlyEntry, ...] = field(default_factory=tuple)
    daily: Tuple[DailyEntry, ...] = field(default_factory=tuple)
    is_loading: bool = False
    error_message: Optional[str] = None


class WeatherState:
    def __init__(self, client: OpenWeatherClient, default_location: str = "New York"):
        self.client = client
        self._snapshot = WeatherSnapshot(location=default_location)
        self._observers: List[Observer] = []
        self._inflight: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> WeatherSnapshot:
        return self._snapshot

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self, snapshot: WeatherSnapshot) -> None:
        self._snapshot = snapshot
        for observer in list(self._observers):
            observer(snapshot)

    async def refresh(self, place_name: str) -> WeatherSnapshot:
        """
        Fetch weather for place_name and publish the result.

        Success replaces current/hourly/daily together and clears the error.
        Failure keeps the previous data and sets error_message.
        If a newer refresh starts first, this one is cancelled and returns
        the snapshot as it stands. Cancelling the refresh itself clears
        is_loading and re-raises.
        """
        previous = self._inflight
        if previous is not None and not previous.done():
            logger.debug("Cancelling superseded fetch")
            previous.cancel()

        task = asyncio.ensure_future(self.client.fetch_weather(place_name))
        self._inflight = task
        self._publish(replace(self._snapshot, location=place_name, is_loading=True, error_message=None))

        try:
            bundle = await task
        except asyncio.CancelledError:
            if self._inflight is not task:
                return self._snapshot
            # the caller gave up; keep the old data but stop loading
            self._inflight = None
            self._publish(replace(self._snapshot, is_loading=False))
            raise
        except WeatherError as e:
            if self._inflight is task:
                self._inflight = None
                self._publish(replace(self._snapshot, is_loading=False, error_message=str(e)))
            return self._snapshot

        if self._inflight is not task:
            # superseded by a newer refresh
            return self._snapshot
        self._inflight = None

        self._publish(replace(
            self._snapshot,
            current=bundle.current,
            hourly=tuple(bundle.hourly),
            daily=tuple(bundle.daily),
            is_loading=False,
            error_message=None,
        ))
        return self._snapshot
