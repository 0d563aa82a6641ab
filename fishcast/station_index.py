"""
Nearest tide-station lookup over the NOAA CO-OPS station directory.

The directory is fetched once per process and memoized. Concurrent callers
that arrive while the first fetch is in flight wait on the same request
instead of issuing their own.
"""
import logging
import math
import threading
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

import numpy as np

from .exceptions import ProviderUnavailable
from .http_client import fetch_json
from .models import Coordinate, Station, StationMatch

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_MAX_RADIUS_KM = 100.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    h = (math.sin((lat2 - lat1) / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2)
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


class StationIndex:
    """Lazily loaded, single-flight protected station directory."""

    def __init__(
        self,
        stations_url: str,
        timeout: float = 10.0,
        fetch: Callable[..., Any] = fetch_json,
    ):
        self.stations_url = stations_url
        self.timeout = timeout
        self._fetch = fetch
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None
        self._stations: Optional[List[Station]] = None
        self._lats: Optional[np.ndarray] = None
        self._lons: Optional[np.ndarray] = None

    def load(self) -> List[Station]:
        """
        Return the station directory, fetching it on first use.

        Raises:
            ProviderUnavailable: If the directory could not be fetched or is empty.
                The in-flight guard is cleared so a later call can retry.
        """
        with self._lock:
            if self._stations is not None:
                return self._stations
            if self._inflight is None:
                self._inflight = Future()
                future, owner = self._inflight, True
            else:
                future, owner = self._inflight, False

        if not owner:
            return future.result()

        try:
            stations = self._fetch_directory()
        except Exception as e:
            with self._lock:
                self._inflight = None
            future.set_exception(e)
            raise

        with self._lock:
            self._stations = stations
            self._lats = np.radians([s.coordinate.latitude for s in stations])
            self._lons = np.radians([s.coordinate.longitude for s in stations])
            self._inflight = None
        future.set_result(stations)
        return stations

    def _fetch_directory(self) -> List[Station]:
        logger.info(f"Loading tide station directory from {self.stations_url.split('?')[0]}")
        data = self._fetch(self.stations_url, timeout=self.timeout)
        if not isinstance(data, dict):
            raise ProviderUnavailable("Unexpected station directory response shape")

        stations = []
        for entry in data.get('stations') or []:
            try:
                stations.append(Station(
                    id=str(entry['id']),
                    name=str(entry.get('name', '')),
                    coordinate=Coordinate(float(entry['lat']), float(entry['lng'])),
                ))
            except (KeyError, TypeError, ValueError):
                # Skip stations with missing or out-of-range coordinates
                continue

        if not stations:
            raise ProviderUnavailable("Station directory contained no usable stations")
        logger.info(f"Loaded {len(stations)} tide stations")
        return stations

    def nearest_station(
        self,
        coordinate: Coordinate,
        max_radius_km: float = DEFAULT_MAX_RADIUS_KM,
    ) -> Optional[StationMatch]:
        """
        Find the closest station to ``coordinate``.

        Args:
            coordinate: Query point
            max_radius_km: Search cutoff in kilometers

        Returns:
            The closest station with its distance, or None if no station lies
            within ``max_radius_km``
        """
        stations = self.load()

        lat = math.radians(coordinate.latitude)
        lon = math.radians(coordinate.longitude)
        h = (np.sin((self._lats - lat) / 2) ** 2
             + math.cos(lat) * np.cos(self._lats) * np.sin((self._lons - lon) / 2) ** 2)
        distances = 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(h, 0.0, 1.0)))

        idx = int(np.argmin(distances))
        distance = float(distances[idx])
        if distance > max_radius_km:
            return None
        return StationMatch(station=stations[idx], distance_km=distance)
