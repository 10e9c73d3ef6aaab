"""
Saved-location operations.

Central place for the business rules on saved places: trimmed names,
case-insensitive uniqueness, a small capacity, and geocoding before a
place is accepted. Every change is load -> modify -> save under one lock
so concurrent calls cannot interleave.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import List, Optional

from .errors import CapacityExceeded, DuplicateLocation, InvalidInput, WeatherError
from .repository import LocationRepository
from .schemas import SavedLocation, name_key
from .weather_clients import OpenWeatherClient

logger = logging.getLogger(__name__)

# Keeps the location picker short.
MAX_SAVED_LOCATIONS = 3


class LocationStore:
    def __init__(
        self,
        repository: LocationRepository,
        client: OpenWeatherClient,
        capacity: int = MAX_SAVED_LOCATIONS,
    ):
        self.repository = repository
        self.client = client
        self.capacity = capacity
        self._lock = asyncio.Lock()

    def list_locations(self) -> List[SavedLocation]:
        return self.repository.load()

    def get_location(self, location_id: str) -> Optional[SavedLocation]:
        for loc in self.repository.load():
            if loc.id == location_id:
                return loc
        return None

    async def add_location(self, name: str) -> SavedLocation:
        """
        Add a place:
        - reject blanks, duplicates (case-insensitive) and a full list
        - geocode it for the official name + coordinates
        - persist

        Nothing is stored if geocoding fails.
        """
        trimmed = (name or "").strip()
        if not trimmed:
            raise InvalidInput("Please enter a place name.")

        async with self._lock:
            locations = self.repository.load()

            if any(name_key(loc.user_input_name) == name_key(trimmed) for loc in locations):
                raise DuplicateLocation(f"{trimmed} is already saved.")
            if len(locations) >= self.capacity:
                raise CapacityExceeded(f"You can save up to {self.capacity} locations.")

            resolved = await self.client.geocode(trimmed)

            location = SavedLocation(
                id=str(uuid.uuid4()),
                user_input_name=trimmed,
                official_display_name=resolved.display_name,
                coordinates_display=resolved.coordinates.display,
            )
            locations.append(location)
            self.repository.save(locations)

        logger.info("Saved location %s (%s)", trimmed, location.official_display_name)
        return location

    async def remove_location(self, location_id: str) -> None:
        """Remove by id. Unknown ids are ignored and nothing is rewritten."""
        async with self._lock:
            locations = self.repository.load()
            kept = [loc for loc in locations if loc.id != location_id]
            if len(kept) == len(locations):
                return
            self.repository.save(kept)

        logger.info("Removed location %s", location_id)

    async def reconcile_missing_coordinates(self) -> int:
        """
        Best effort: geocode saved places that have no cached coordinates.

        Failures are logged and skipped. Returns how many entries were filled.
        """
        async with self._lock:
            locations = self.repository.load()
            filled = 0

            for i, loc in enumerate(locations):
                if loc.coordinates_display and loc.official_display_name:
                    continue
                try:
                    resolved = await self.client.geocode(loc.user_input_name)
                except WeatherError as e:
                    logger.warning("Could not resolve %s: %s", loc.user_input_name, e)
                    continue

                locations[i] = loc.model_copy(update={
                    "official_display_name": loc.official_display_name or resolved.display_name,
                    "coordinates_display": loc.coordinates_display or resolved.coordinates.display,
                })
                filled += 1

            if filled:
                self.repository.save(locations)

        return filled
