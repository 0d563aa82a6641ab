"""
Tide extreme providers.

Two implementations share one interface:

- NoaaTideProvider: NOAA CO-OPS station predictions. Free, but only covers
  US waters and needs the nearest prediction station.
- WorldTidesProvider: WorldTides point predictions. Global coverage, but
  every call spends tokens from a finite budget, so the requested day span
  is capped.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import urlencode

from .exceptions import ProviderUnavailable, StationNotFound
from .http_client import fetch_json
from .models import Coordinate, TideDataset, TideExtreme, TideKind, TideSource, as_utc
from .station_index import DEFAULT_MAX_RADIUS_KM, StationIndex

logger = logging.getLogger(__name__)

# (lat_min, lat_max, lon_min, lon_max)
US_BOUNDING_BOXES: Tuple[Tuple[float, float, float, float], ...] = (
    (24.5, 49.5, -125.0, -66.5),    # Continental US
    (51.0, 72.0, -180.0, -130.0),   # Alaska
    (18.5, 22.5, -161.0, -154.0),   # Hawaii
)


def is_us_location(coordinate: Coordinate) -> bool:
    """Rough check against the continental US, Alaska and Hawaii boxes."""
    return any(
        lat_min <= coordinate.latitude <= lat_max and lon_min <= coordinate.longitude <= lon_max
        for lat_min, lat_max, lon_min, lon_max in US_BOUNDING_BOXES
    )


class TideProvider(ABC):
    """Source of tide extremes for a coordinate."""

    name: str = 'provider'
    source: TideSource

    def covers(self, coordinate: Coordinate) -> bool:
        """Whether this provider can serve the coordinate at all."""
        return True

    def is_configured(self) -> bool:
        """Whether the provider has the credentials it needs."""
        return True

    @abstractmethod
    def fetch(self, coordinate: Coordinate, days: int, now: Optional[datetime] = None) -> TideDataset:
        """
        Fetch tide extremes for ``days`` days starting at ``now``.

        Raises:
            ProviderUnavailable: On any failure to produce data
        """


class NoaaTideProvider(TideProvider):
    """NOAA CO-OPS high/low predictions from the nearest US station."""

    name = 'NOAA'
    source = TideSource.LOCAL_FREE

    def __init__(
        self,
        station_index: StationIndex,
        data_url: str,
        timeout: float = 10.0,
        max_radius_km: float = DEFAULT_MAX_RADIUS_KM,
        fetch: Callable[..., Any] = fetch_json,
    ):
        self.station_index = station_index
        self.data_url = data_url
        self.timeout = timeout
        self.max_radius_km = max_radius_km
        self._fetch = fetch

    def covers(self, coordinate: Coordinate) -> bool:
        return is_us_location(coordinate)

    def fetch(self, coordinate: Coordinate, days: int, now: Optional[datetime] = None) -> TideDataset:
        match = self.station_index.nearest_station(coordinate, self.max_radius_km)
        if match is None:
            raise StationNotFound(
                f"No NOAA station within {self.max_radius_km:g} km of "
                f"({coordinate.latitude}, {coordinate.longitude})"
            )
        station = match.station

        start = as_utc(now) if now else datetime.now(timezone.utc)
        end = start + timedelta(days=days)
        params = {
            'begin_date': start.strftime('%Y%m%d'),
            'end_date': end.strftime('%Y%m%d'),
            'station': station.id,
            'product': 'predictions',
            'datum': 'MLLW',
            'units': 'metric',
            'time_zone': 'gmt',
            'application': 'fishcast',
            'format': 'json',
            'interval': 'hilo',
        }
        data = self._fetch(f"{self.data_url}?{urlencode(params)}", timeout=self.timeout)
        if not isinstance(data, dict):
            raise ProviderUnavailable("Unexpected NOAA response shape")

        if 'error' in data:
            error = data['error']
            if isinstance(error, dict):
                message = error.get('message', 'Unknown error from NOAA API')
            else:
                message = str(error)
            raise ProviderUnavailable(f"NOAA station {station.id}: {message}")

        logger.debug(f"NOAA station {station.id} ({match.distance_km:.1f} km) answered")
        return TideDataset(
            extremes=self._normalize(data.get('predictions') or []),
            source=self.source,
            station_id=station.id,
            station_name=station.name,
        )

    @staticmethod
    def _normalize(predictions: List[dict]) -> List[TideExtreme]:
        extremes = []
        if not isinstance(predictions, list):
            return extremes
        for entry in predictions:
            if not isinstance(entry, dict):
                continue
            time_str = entry.get('t')
            height_str = entry.get('v')
            if not time_str or height_str in (None, ''):
                continue
            try:
                # NOAA returns 'YYYY-MM-DD HH:MM' in GMT when time_zone=gmt
                dt = datetime.strptime(time_str, '%Y-%m-%d %H:%M').replace(tzinfo=timezone.utc)
                height = float(height_str)
            except ValueError:
                continue
            kind = TideKind.HIGH if str(entry.get('type', '')).upper() == 'H' else TideKind.LOW
            extremes.append(TideExtreme(timestamp=dt, height=height, kind=kind))
        return extremes


class WorldTidesProvider(TideProvider):
    """WorldTides extremes for any point; costs roughly one token per day."""

    name = 'WorldTides'
    source = TideSource.GLOBAL_METERED

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 10.0,
        max_days: int = 2,
        fetch: Callable[..., Any] = fetch_json,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_days = max_days
        self._fetch = fetch

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def fetch(self, coordinate: Coordinate, days: int, now: Optional[datetime] = None) -> TideDataset:
        if not self.api_key:
            raise ProviderUnavailable("WorldTides API key is not configured")

        start = as_utc(now) if now else datetime.now(timezone.utc)
        midnight = start.replace(hour=0, minute=0, second=0, microsecond=0)
        params = {
            'key': self.api_key,
            'lat': coordinate.latitude,
            'lon': coordinate.longitude,
            'days': max(1, min(days, self.max_days)),
            'datum': 'LAT',
            'start': int(midnight.timestamp()),
        }
        data = self._fetch(f"{self.base_url}?extremes&{urlencode(params)}", timeout=self.timeout)
        if not isinstance(data, dict):
            raise ProviderUnavailable("Unexpected WorldTides response shape")

        if data.get('error'):
            raise ProviderUnavailable(f"WorldTides: {data['error']}")

        return TideDataset(extremes=self._normalize(data.get('extremes') or []), source=self.source)

    @staticmethod
    def _normalize(entries: List[dict]) -> List[TideExtreme]:
        extremes = []
        if not isinstance(entries, list):
            return extremes
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                dt = datetime.fromtimestamp(int(entry['dt']), tz=timezone.utc)
                height = float(entry['height'])
            except (KeyError, TypeError, ValueError, OverflowError, OSError):
                continue
            kind = TideKind.HIGH if entry.get('type') == 'High' else TideKind.LOW
            extremes.append(TideExtreme(timestamp=dt, height=height, kind=kind))
        return extremes
