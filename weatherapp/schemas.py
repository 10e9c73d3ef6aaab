"""
Pydantic schemas.

Provider payloads are decoded straight into flat records: nested JSON
paths (e.g. main.temp, weather[0].icon) are read with AliasPath so the
rest of the app never touches raw dicts.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import (
    AliasPath,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    computed_field,
    field_validator,
)

from .errors import DecodeError
from .icons import icon_for


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    @property
    def display(self) -> str:
        return f"Lat: {self.lat:.4f}, Lon: {self.lon:.4f}"


class GeoCandidate(BaseModel):
    """One entry of the geocoding lookup."""
    name: str
    lat: float
    lon: float
    country: str = ""
    state: Optional[str] = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)

    @property
    def display_name(self) -> str:
        # e.g. "New York, US"
        if not self.country:
            return self.name
        return f"{self.name}, {self.country}"


class CurrentWeather(BaseModel):
    temperature_f: float = Field(validation_alias=AliasPath("main", "temp"))
    wind_speed_mph: float = Field(validation_alias=AliasPath("wind", "speed"))
    # Millimetres of rain over the last hour; the provider omits the block when dry
    rain_chance_mm: float = Field(0.0, validation_alias=AliasPath("rain", "1h"))
    condition_code: str = Field(validation_alias=AliasPath("weather", 0, "icon"))
    description: str = Field(validation_alias=AliasPath("weather", 0, "description"))
    coordinates: Optional[Coordinates] = Field(None, validation_alias="coord")

    @field_validator("rain_chance_mm", mode="before")
    @classmethod
    def _null_rain_is_dry(cls, v):
        return 0.0 if v is None else v

    @computed_field
    @property
    def icon_id(self) -> str:
        return icon_for(self.condition_code)


class HourlyEntry(BaseModel):
    timestamp: datetime = Field(validation_alias="dt")
    temperature_f: float = Field(validation_alias=AliasPath("main", "temp"))
    condition_code: str = Field(validation_alias=AliasPath("weather", 0, "icon"))
    description: str = Field(validation_alias=AliasPath("weather", 0, "description"))

    @computed_field
    @property
    def icon_id(self) -> str:
        return icon_for(self.condition_code)


class DailyEntry(BaseModel):
    timestamp: datetime = Field(validation_alias="dt")
    day_temp: float = Field(validation_alias=AliasPath("temp", "day"))
    min_temp: float = Field(validation_alias=AliasPath("temp", "min"))
    max_temp: float = Field(validation_alias=AliasPath("temp", "max"))
    condition_code: str = Field(validation_alias=AliasPath("weather", 0, "icon"))
    description: str = Field(validation_alias=AliasPath("weather", 0, "description"))

    @computed_field
    @property
    def icon_id(self) -> str:
        return icon_for(self.condition_code)


class HourlyForecast(BaseModel):
    entries: List[HourlyEntry] = Field(validation_alias="list")


class DailyForecast(BaseModel):
    entries: List[DailyEntry] = Field(validation_alias="list")


class WeatherBundle(BaseModel):
    """Everything one fetch produces. Replaces the previous bundle wholesale."""
    location: GeoCandidate
    current: CurrentWeather
    hourly: List[HourlyEntry]
    daily: List[DailyEntry]

    def next_hours(self, limit: int = 24) -> List[HourlyEntry]:
        return self.hourly[:limit]


class SavedLocation(BaseModel):
    id: str
    user_input_name: str
    official_display_name: str = ""
    coordinates_display: str = ""


def name_key(name: str) -> str:
    """Comparison key for saved place names: trimmed and casefolded."""
    return name.strip().casefold()


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

_geo_list = TypeAdapter(List[GeoCandidate])
saved_locations_adapter = TypeAdapter(List[SavedLocation])


def _first_error_field(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ""
    return ".".join(str(part) for part in errors[0].get("loc", ()))


def _decode(validate, raw: bytes | str, endpoint: str):
    try:
        return validate(raw)
    except ValidationError as e:
        field = _first_error_field(e)
        raise DecodeError(
            f"Could not read {endpoint} response (field: {field or 'body'}).",
            field=field,
            endpoint=endpoint,
        ) from e


def decode_geocoding(raw: bytes | str) -> List[GeoCandidate]:
    return _decode(_geo_list.validate_json, raw, "geocoding")


def decode_current(raw: bytes | str) -> CurrentWeather:
    return _decode(CurrentWeather.model_validate_json, raw, "current weather")


def decode_hourly(raw: bytes | str) -> List[HourlyEntry]:
    return _decode(HourlyForecast.model_validate_json, raw, "hourly forecast").entries


def decode_daily(raw: bytes | str) -> List[DailyEntry]:
    return _decode(DailyForecast.model_validate_json, raw, "daily forecast").entries
