"""Tests for the saved-location store."""

import asyncio
import json

import pytest
import respx
from httpx import Response

from weatherapp.crud import LocationStore
from weatherapp.errors import (
    CapacityExceeded,
    DuplicateLocation,
    InvalidInput,
    NetworkError,
    NotFound,
)
from weatherapp.repository import LocationRepository
from weatherapp.schemas import SavedLocation

from tests.fakes import FakeGeocoder
from tests.payloads import GEO_URL, PARIS_GEO


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def store(repository, geocoder) -> LocationStore:
    return LocationStore(repository, geocoder)


def _names(store: LocationStore):
    return [loc.user_input_name for loc in store.list_locations()]


class TestAddLocation:
    def test_adds_resolved_location(self, store):
        loc = asyncio.run(store.add_location("  Paris  "))
        assert loc.user_input_name == "Paris"
        assert loc.official_display_name == "Paris, FR"
        assert loc.coordinates_display == "Lat: 48.8566, Lon: 2.3522"
        assert loc.id
        assert store.list_locations() == [loc]

    def test_unencodable_name_adds_nothing(self, repository, client):
        store = LocationStore(repository, client)
        with respx.mock(assert_all_called=False) as router:
            route = router.get(GEO_URL).mock(return_value=Response(200, json=PARIS_GEO))
            with pytest.raises(InvalidInput):
                asyncio.run(store.add_location("Par\ud800is"))
        assert not route.called
        assert repository.load() == []

    def test_duplicate_uses_full_case_folding(self, store, repository, geocoder):
        repository.save([SavedLocation(id="a", user_input_name="Stra\u00dfe")])
        with pytest.raises(DuplicateLocation):
            asyncio.run(store.add_location("STRASSE"))
        assert geocoder.calls == []

    def test_keeps_insertion_order(self, store):
        async def add_all():
            for name in ("Tokyo", "Paris", "London"):
                await store.add_location(name)

        asyncio.run(add_all())
        assert _names(store) == ["Tokyo", "Paris", "London"]

    def test_ids_are_unique(self, store):
        async def add_all():
            return [await store.add_location(n) for n in ("Tokyo", "Paris", "London")]

        locs = asyncio.run(add_all())
        assert len({loc.id for loc in locs}) == 3

    def test_duplicate_is_case_insensitive(self, store, geocoder):
        asyncio.run(store.add_location("Paris"))
        with pytest.raises(DuplicateLocation):
            asyncio.run(store.add_location("paris"))
        with pytest.raises(DuplicateLocation):
            asyncio.run(store.add_location(" PARIS "))
        assert _names(store) == ["Paris"]
        # the duplicate never reached the geocoder
        assert geocoder.calls == ["Paris"]

    def test_fourth_location_is_refused(self, store, repository):
        async def add_all():
            for name in ("Tokyo", "Paris", "London"):
                await store.add_location(name)

        asyncio.run(add_all())
        before = repository.load()

        with pytest.raises(CapacityExceeded):
            asyncio.run(store.add_location("New York"))
        assert repository.load() == before

    def test_duplicate_checked_before_capacity(self, store):
        async def add_all():
            for name in ("Tokyo", "Paris", "London"):
                await store.add_location(name)

        asyncio.run(add_all())
        with pytest.raises(DuplicateLocation):
            asyncio.run(store.add_location("tokyo"))

    def test_custom_capacity(self, repository, geocoder):
        store = LocationStore(repository, geocoder, capacity=1)
        asyncio.run(store.add_location("Paris"))
        with pytest.raises(CapacityExceeded):
            asyncio.run(store.add_location("London"))

    @pytest.mark.parametrize("name", ["", "   ", "\n"])
    def test_blank_name(self, store, name):
        with pytest.raises(InvalidInput):
            asyncio.run(store.add_location(name))
        assert store.list_locations() == []

    def test_failed_geocode_adds_nothing(self, store, repository):
        with pytest.raises(NotFound):
            asyncio.run(store.add_location("Atlantis"))
        assert repository.load() == []

    def test_network_failure_adds_nothing(self, repository):
        store = LocationStore(repository, FakeGeocoder(failing={"paris"}))
        with pytest.raises(NetworkError):
            asyncio.run(store.add_location("Paris"))
        assert repository.load() == []

    def test_concurrent_adds_do_not_interleave(self, store):
        async def add_same_twice():
            return await asyncio.gather(
                store.add_location("Paris"),
                store.add_location("paris"),
                return_exceptions=True,
            )

        results = asyncio.run(add_same_twice())
        assert sum(isinstance(r, SavedLocation) for r in results) == 1
        assert sum(isinstance(r, DuplicateLocation) for r in results) == 1
        assert _names(store) == ["Paris"]

    def test_concurrent_adds_respect_capacity(self, repository, geocoder):
        store = LocationStore(repository, geocoder, capacity=2)

        async def add_many():
            return await asyncio.gather(
                *(store.add_location(n) for n in ("Paris", "London", "Tokyo")),
                return_exceptions=True,
            )

        results = asyncio.run(add_many())
        assert sum(isinstance(r, CapacityExceeded) for r in results) == 1
        assert len(store.list_locations()) == 2

    def test_with_real_client(self, repository, client):
        store = LocationStore(repository, client)
        with respx.mock:
            route = respx.get(GEO_URL).mock(return_value=Response(200, json=PARIS_GEO))
            loc = asyncio.run(store.add_location("Paris"))
        assert route.calls.last.request.url.params["q"] == "Paris"
        assert loc.official_display_name == "Paris, FR"


class TestRemoveLocation:
    def test_removes_by_id(self, store):
        async def setup():
            return [await store.add_location(n) for n in ("Tokyo", "Paris", "London")]

        tokyo, paris, london = asyncio.run(setup())
        asyncio.run(store.remove_location(paris.id))
        assert store.list_locations() == [tokyo, london]
        assert store.get_location(paris.id) is None
        assert store.get_location(tokyo.id) == tokyo

    def test_unknown_id_is_noop(self, store, repository, session_factory):
        async def setup():
            return [await store.add_location(n) for n in ("Tokyo", "Paris")]

        before = asyncio.run(setup())
        asyncio.run(store.remove_location("does-not-exist"))
        assert repository.load() == before

    def test_removal_frees_capacity(self, store):
        async def scenario():
            locs = [await store.add_location(n) for n in ("Tokyo", "Paris", "London")]
            await store.remove_location(locs[0].id)
            await store.add_location("New York")

        asyncio.run(scenario())
        assert _names(store) == ["Paris", "London", "New York"]

    def test_removal_persists(self, store, session_factory, geocoder):
        loc = asyncio.run(store.add_location("Paris"))
        asyncio.run(store.remove_location(loc.id))
        assert LocationRepository(session_factory).load() == []


class TestReconcile:
    def _seed(self, repository, *entries):
        repository.save([
            SavedLocation(id=f"id-{i}", user_input_name=name, official_display_name=official, coordinates_display=coords)
            for i, (name, official, coords) in enumerate(entries)
        ])

    def test_fills_missing_coordinates(self, store, repository, geocoder):
        self._seed(
            repository,
            ("Paris", "", ""),
            ("London", "London, GB", "Lat: 51.5073, Lon: -0.1276"),
        )
        filled = asyncio.run(store.reconcile_missing_coordinates())
        assert filled == 1
        assert geocoder.calls == ["Paris"]

        paris, london = repository.load()
        assert paris.id == "id-0"
        assert paris.official_display_name == "Paris, FR"
        assert paris.coordinates_display == "Lat: 48.8566, Lon: 2.3522"
        assert london.coordinates_display == "Lat: 51.5073, Lon: -0.1276"

    def test_keeps_existing_coordinates(self, store, repository):
        self._seed(repository, ("Paris", "", "Lat: 1.0000, Lon: 2.0000"))
        asyncio.run(store.reconcile_missing_coordinates())
        (paris,) = repository.load()
        assert paris.coordinates_display == "Lat: 1.0000, Lon: 2.0000"
        assert paris.official_display_name == "Paris, FR"

    def test_failures_are_skipped(self, repository):
        geocoder = FakeGeocoder(failing={"tokyo"})
        store = LocationStore(repository, geocoder)
        self._seed(repository, ("Atlantis", "", ""), ("Tokyo", "", ""), ("Paris", "", ""))

        filled = asyncio.run(store.reconcile_missing_coordinates())
        assert filled == 1
        atlantis, tokyo, paris = repository.load()
        assert atlantis.coordinates_display == ""
        assert tokyo.coordinates_display == ""
        assert paris.coordinates_display == "Lat: 48.8566, Lon: 2.3522"

    def test_nothing_to_do(self, store, geocoder):
        assert asyncio.run(store.reconcile_missing_coordinates()) == 0
        assert geocoder.calls == []

    def test_fills_migrated_legacy_entries(self, store, repository, session_factory):
        from datetime import datetime

        from weatherapp import models
        from weatherapp.repository import LEGACY_NAMES_KEY

        with session_factory() as db:
            db.add(models.KeyValue(key=LEGACY_NAMES_KEY, value=json.dumps(["New York"]), updated_at=datetime.utcnow()))
            db.commit()

        assert asyncio.run(store.reconcile_missing_coordinates()) == 1
        (ny,) = store.list_locations()
        assert ny.official_display_name == "New York, US"
        assert ny.coordinates_display == "Lat: 40.7128, Lon: -74.0060"
