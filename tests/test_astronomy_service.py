"""
Unit tests for Astronomy Service
"""

from datetime import datetime, timezone

import pytest

from fishcast.astronomy_service import AstronomyService


@pytest.fixture(scope="module")
def service():
    """Create an astronomy service instance for testing."""
    return AstronomyService()


class TestMoonPhaseNames:
    """Tests for moon phase naming."""

    @pytest.mark.parametrize("fraction,name", [
        (0.0, "New Moon"),
        (0.99, "New Moon"),
        (0.1, "Waxing Crescent"),
        (0.25, "First Quarter"),
        (0.4, "Waxing Gibbous"),
        (0.5, "Full Moon"),
        (0.6, "Waning Gibbous"),
        (0.75, "Last Quarter"),
        (0.9, "Waning Crescent"),
    ])
    def test_phase_names(self, fraction, name):
        assert AstronomyService.moon_phase_name(fraction) == name

    def test_fraction_wraps(self):
        """Fractions outside 0-1 wrap around the cycle."""
        assert AstronomyService.moon_phase_name(1.5) == "Full Moon"


class TestMoonIllumination:
    """Tests for illuminated percentage."""

    @pytest.mark.parametrize("fraction,percent", [
        (0.0, 0),
        (0.25, 50),
        (0.5, 100),
        (0.75, 50),
    ])
    def test_illumination(self, fraction, percent):
        assert AstronomyService.moon_illumination(fraction) == percent


class TestMoonPhaseFraction:
    """Tests for the ephemeris-backed moon phase."""

    def test_ephemeris_loaded_lazily(self):
        """Constructing the service does not load the ephemeris."""
        assert AstronomyService()._eph is None

    def test_full_moon(self, service):
        """Full moon of 25 January 2024 (17:54 UTC) is near 0.5."""
        fraction = service.moon_phase_fraction(datetime(2024, 1, 25, 17, 54, tzinfo=timezone.utc))
        assert fraction == pytest.approx(0.5, abs=0.01)

    def test_new_moon(self, service):
        """New moon of 11 January 2024 (11:57 UTC) is near 0 or 1."""
        fraction = service.moon_phase_fraction(datetime(2024, 1, 11, 11, 57, tzinfo=timezone.utc))
        assert min(fraction, 1 - fraction) < 0.01

    def test_fraction_in_range(self, service):
        fraction = service.moon_phase_fraction(datetime(2024, 3, 3, tzinfo=timezone.utc))
        assert 0.0 <= fraction < 1.0


class TestLocalTime:
    """Tests for timezone detection and local time."""

    def test_timezone_auto_detection(self, service):
        tz = service.get_timezone(27.95, -82.46)
        assert str(tz) == "America/New_York"

    def test_explicit_timezone(self, service):
        assert str(service.get_timezone(0, 0, "Australia/Sydney")) == "Australia/Sydney"

    def test_invalid_timezone_falls_back_to_utc(self, service):
        assert str(service.get_timezone(0, 0, "Not/AZone")) == "UTC"

    def test_local_time_summer(self, service):
        """Tampa is UTC-4 in June."""
        local = service.local_time(27.95, -82.46, datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc))
        assert local.hour == 8
        assert local.utcoffset().total_seconds() == -4 * 3600

    def test_local_time_naive_is_utc(self, service):
        local = service.local_time(51.5, -0.1, datetime(2025, 1, 15, 12, 0))
        assert local.hour == 12
