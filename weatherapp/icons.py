"""
Condition code -> display icon.

OpenWeather condition codes look like "01d" / "10n": two digits for the
condition group, one letter for day or night.
"""

UNKNOWN_ICON = "unknown"

ICON_MAP = {
    # Clear sky
    "01d": "clear-day",
    "01n": "clear-night",
    # Few clouds
    "02d": "partly-cloudy-day",
    "02n": "partly-cloudy-night",
    # Scattered clouds
    "03d": "cloudy-day",
    "03n": "cloudy-night",
    # Broken / overcast
    "04d": "overcast-day",
    "04n": "overcast-night",
    # Shower rain
    "09d": "drizzle-day",
    "09n": "drizzle-night",
    # Rain
    "10d": "rain-day",
    "10n": "rain-night",
    # Thunderstorm
    "11d": "thunderstorm-day",
    "11n": "thunderstorm-night",
    # Snow
    "13d": "snow-day",
    "13n": "snow-night",
    # Mist / fog / haze
    "50d": "fog-day",
    "50n": "fog-night",
}


def icon_for(code: str) -> str:
    """Map a condition code to an icon id. Never fails."""
    if not isinstance(code, str):
        return UNKNOWN_ICON
    return ICON_MAP.get(code.strip().lower(), UNKNOWN_ICON)
