"""Shared test fixtures."""

from pathlib import Path

import pytest

from weatherapp.db import make_engine, make_session_factory
from weatherapp.repository import LocationRepository
from weatherapp.weather_clients import OpenWeatherClient


@pytest.fixture
def client() -> OpenWeatherClient:
    return OpenWeatherClient(api_key="test-key", timeout_s=5.0)


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = make_engine(str(tmp_path / "test.sqlite3"))
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory) -> LocationRepository:
    return LocationRepository(session_factory)
