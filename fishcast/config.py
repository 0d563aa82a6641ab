"""
Runtime configuration for the fishcast engine.

Values come from environment variables, optionally loaded from a .env file
in the project root. Malformed numeric values fall back to their defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if it exists (for the WorldTides API key)
_ENV_PATH = Path(__file__).parent.parent / '.env'
if _ENV_PATH.exists():
    load_dotenv(_ENV_PATH)


def _get_float_env(key: str, default: float) -> float:
    """Get a float value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get an int value from environment variable or use default."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


# =============================================================================
# Provider endpoints
# =============================================================================

NOAA_DATA_URL = 'https://api.tidesandcurrents.noaa.gov/api/prod/datagetter'
NOAA_STATIONS_URL = (
    'https://api.tidesandcurrents.noaa.gov/mdapi/prod/webapi/stations.json'
    '?type=tidepredictions'
)
WORLDTIDES_URL = 'https://www.worldtides.info/api/v3'

# Security: Maximum response size from external APIs (1 MB)
MAX_RESPONSE_SIZE = 1 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    worldtides_api_key: str = ''
    noaa_data_url: str = NOAA_DATA_URL
    noaa_stations_url: str = NOAA_STATIONS_URL
    worldtides_url: str = WORLDTIDES_URL
    api_timeout_seconds: float = 10.0
    fresh_ttl_seconds: float = 6 * 60 * 60
    stale_ttl_seconds: float = 24 * 60 * 60
    # WorldTides charges roughly one token per day requested
    metered_max_days: int = 2
    station_radius_km: float = 100.0
    cache_path: Optional[str] = None
    max_response_size: int = MAX_RESPONSE_SIZE

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            worldtides_api_key=os.environ.get('WORLDTIDES_API_KEY', ''),
            noaa_data_url=os.environ.get('NOAA_DATA_URL', NOAA_DATA_URL),
            noaa_stations_url=os.environ.get('NOAA_STATIONS_URL', NOAA_STATIONS_URL),
            worldtides_url=os.environ.get('WORLDTIDES_URL', WORLDTIDES_URL),
            api_timeout_seconds=_get_float_env('FISHCAST_API_TIMEOUT', 10.0),
            fresh_ttl_seconds=_get_float_env('FISHCAST_FRESH_TTL_SECONDS', 6 * 60 * 60),
            stale_ttl_seconds=_get_float_env('FISHCAST_STALE_TTL_SECONDS', 24 * 60 * 60),
            metered_max_days=_get_int_env('FISHCAST_METERED_MAX_DAYS', 2),
            station_radius_km=_get_float_env('FISHCAST_STATION_RADIUS_KM', 100.0),
            cache_path=os.environ.get('FISHCAST_CACHE_PATH') or None,
            max_response_size=_get_int_env('FISHCAST_MAX_RESPONSE_BYTES', MAX_RESPONSE_SIZE),
        )
