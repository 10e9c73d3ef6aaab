"""
Error taxonomy.

Every failure the weather client can hit is converted into one of these
before it leaves the client. str(error) is safe to show to a user.
"""

from __future__ import annotations

from typing import Optional


class WeatherError(RuntimeError):
    """Raised for user-facing weather lookup failures."""
    pass


class InvalidInput(WeatherError):
    """Blank place name or a request that cannot be built."""
    pass


class NotFound(WeatherError):
    """Geocoding returned no candidates."""
    pass


class NetworkError(WeatherError):
    """Transport failure: DNS, connect, timeout."""
    pass


class HttpStatusError(WeatherError):
    def __init__(self, message: str, status_code: int, endpoint: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class DecodeError(WeatherError):
    def __init__(self, message: str, field: Optional[str] = None, endpoint: str = ""):
        super().__init__(message)
        self.field = field
        self.endpoint = endpoint


class StoreError(RuntimeError):
    """Raised when a saved-location change is refused."""
    pass


class DuplicateLocation(StoreError):
    pass


class CapacityExceeded(StoreError):
    pass
