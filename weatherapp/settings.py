from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized configuration.

    Loaded from:
    - environment variables
    - .env file (if present)
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Required key (the app should fail fast if missing)
    openweather_api_key: str

    # Provider hosts. Hourly forecasts are only served from the "pro" host.
    openweather_base_url: str = "https://api.openweathermap.org"
    openweather_pro_base_url: str = "https://pro.openweathermap.org"

    # Upper bound for every outbound request, in seconds
    request_timeout_s: float = 10.0

    units: str = "imperial"
    daily_count: int = 7

    # Saved locations
    max_saved_locations: int = 3
    default_location: str = "New York"

    # SQLite file path (simple local persistence)
    sqlite_path: str = "weather_app.sqlite3"

    log_level: str = "INFO"
    app_name: str = "Weather App"


@lru_cache
def get_settings() -> Settings:
    return Settings()
