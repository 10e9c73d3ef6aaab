"""
Saved-location persistence.

The whole collection is one JSON blob under one key; every save rewrites
it. Older installs kept two separate blobs (a list of names and a
name -> "Lat: .., Lon: .." map); those are migrated on first load.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .schemas import SavedLocation, name_key, saved_locations_adapter

logger = logging.getLogger(__name__)

LOCATIONS_KEY = "locations"
LEGACY_NAMES_KEY = "savedLocations"
LEGACY_COORDINATES_KEY = "locationCoordinates"


class LocationRepository:
    def __init__(self, session_factory: sessionmaker, key: str = LOCATIONS_KEY, capacity: int = 3):
        self.session_factory = session_factory
        self.key = key
        self.capacity = capacity

    def _read(self, db: Session, key: str) -> Optional[str]:
        row = db.get(models.KeyValue, key)
        return row.value if row is not None else None

    def load(self) -> List[SavedLocation]:
        """Missing or unreadable data yields an empty collection."""
        with self.session_factory() as db:
            blob = self._read(db, self.key)
            if blob is None:
                migrated = self._load_legacy(db)
            else:
                migrated = None

        if migrated is not None:
            if migrated:
                self.save(migrated)
            return migrated

        try:
            stored = saved_locations_adapter.validate_json(blob)
        except ValidationError:
            logger.warning("Stored locations under %r are unreadable; starting empty", self.key)
            return []

        kept = self._dedupe(stored)
        if len(kept) < len(stored):
            logger.warning(
                "Dropped %d stored location(s) under %r (duplicates or over capacity %d)",
                len(stored) - len(kept), self.key, self.capacity,
            )
        return kept

    def _dedupe(self, locations: List[SavedLocation]) -> List[SavedLocation]:
        """First occurrence of each name wins; at most capacity entries."""
        kept: List[SavedLocation] = []
        seen = set()
        for loc in locations:
            key = name_key(loc.user_input_name)
            if key in seen:
                continue
            if len(kept) >= self.capacity:
                break
            seen.add(key)
            kept.append(loc)
        return kept

    def save(self, locations: List[SavedLocation]) -> None:
        blob = saved_locations_adapter.dump_json(list(locations)).decode("utf-8")
        with self.session_factory() as db:
            db.merge(models.KeyValue(key=self.key, value=blob, updated_at=datetime.utcnow()))
            db.commit()

    def _load_legacy(self, db: Session) -> List[SavedLocation]:
        names_blob = self._read(db, LEGACY_NAMES_KEY)
        if names_blob is None:
            return []

        try:
            names = json.loads(names_blob)
            coords_blob = self._read(db, LEGACY_COORDINATES_KEY)
            coords: Dict[str, str] = json.loads(coords_blob) if coords_blob else {}
        except json.JSONDecodeError:
            logger.warning("Legacy saved locations are unreadable; starting empty")
            return []
        if not isinstance(names, list) or not isinstance(coords, dict):
            logger.warning("Legacy saved locations have an unexpected shape; starting empty")
            return []

        candidates: List[SavedLocation] = []
        for name in names:
            if not isinstance(name, str) or not name.strip():
                continue
            name = name.strip()
            coordinates = coords.get(name)
            candidates.append(SavedLocation(
                id=str(uuid.uuid4()),
                user_input_name=name,
                coordinates_display=coordinates if isinstance(coordinates, str) else "",
            ))
        migrated = self._dedupe(candidates)

        logger.info("Migrated %d legacy saved location(s)", len(migrated))
        return migrated
