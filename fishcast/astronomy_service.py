"""
Astronomy Service for the lunar and local-time inputs of condition scoring.

This module provides:
- Moon phase as a fraction of the synodic cycle (0 = new, 0.5 = full)
- Moon phase names and illumination
- Local wall-clock time for a coordinate (timezone auto-detected)

The JPL ephemeris is loaded on first use, so constructing the service is cheap.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from skyfield import almanac
from skyfield.api import load
from timezonefinder import TimezoneFinder

from .models import as_utc

logger = logging.getLogger(__name__)


class AstronomyService:
    """Moon phase and local time lookups for a location."""

    def __init__(self, ephemeris: str = "de421.bsp"):
        self.ephemeris_name = ephemeris
        self._eph = None
        self._ts = None

        # Timezone finder for auto-detection
        self._tf = TimezoneFinder()

    def _ensure_ephemeris(self):
        """Load the ephemeris data and timescale on first use."""
        if self._eph is None:
            logger.info(f"Loading ephemeris {self.ephemeris_name}")
            self._eph = load(self.ephemeris_name)
            self._ts = load.timescale()
        return self._eph, self._ts

    def get_timezone(self, lat: float, lon: float, timezone_str: Optional[str] = None) -> ZoneInfo:
        """Get timezone for coordinates, auto-detecting if not provided."""
        if timezone_str is None:
            timezone_str = self._tf.timezone_at(lat=lat, lng=lon)
            if timezone_str is None:
                timezone_str = 'UTC'

        try:
            return ZoneInfo(timezone_str)
        except (ValueError, KeyError):
            return ZoneInfo('UTC')

    def local_time(self, lat: float, lon: float, when: Optional[datetime] = None) -> datetime:
        """
        Convert an instant to local wall-clock time at a location.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            when: Instant to convert (default: now)

        Returns:
            Timezone-aware datetime in the location's timezone
        """
        when = as_utc(when) if when else datetime.now(timezone.utc)
        return when.astimezone(self.get_timezone(lat, lon))

    def moon_phase_fraction(self, when: Optional[datetime] = None) -> float:
        """
        Moon phase at ``when`` as a fraction of the lunation.

        Returns:
            0.0 at new moon, 0.5 at full moon, approaching 1.0 before the next new moon
        """
        eph, ts = self._ensure_ephemeris()
        when = as_utc(when) if when else datetime.now(timezone.utc)
        angle = almanac.moon_phase(eph, ts.from_datetime(when)).degrees
        return (angle % 360) / 360.0

    @staticmethod
    def moon_phase_name(fraction: float) -> str:
        """
        Convert a moon phase fraction to a descriptive name.

        Args:
            fraction: Moon phase fraction (0-1)

        Returns:
            String description of the moon phase
        """
        fraction = fraction % 1.0

        if fraction < 0.03 or fraction > 0.97:
            return "New Moon"
        elif fraction < 0.22:
            return "Waxing Crescent"
        elif fraction < 0.28:
            return "First Quarter"
        elif fraction < 0.47:
            return "Waxing Gibbous"
        elif fraction < 0.53:
            return "Full Moon"
        elif fraction < 0.72:
            return "Waning Gibbous"
        elif fraction < 0.78:
            return "Last Quarter"
        else:
            return "Waning Crescent"

    @staticmethod
    def moon_illumination(fraction: float) -> int:
        """
        Illuminated percentage of the disc (0 at new moon, 100 at full).
        """
        fraction = fraction % 1.0
        if fraction <= 0.5:
            return round(fraction * 200)
        return round((1.0 - fraction) * 200)
