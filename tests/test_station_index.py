"""
Unit tests for the nearest tide-station index
"""
import threading
import time
from unittest.mock import Mock

import pytest

from fishcast.exceptions import ProviderUnavailable
from fishcast.models import Coordinate
from fishcast.station_index import StationIndex, haversine_km
from tests.sample_data import STATION_DIRECTORY, TEST_LOCATIONS

STATIONS_URL = 'https://stations.test/stations.json?type=tidepredictions'


@pytest.fixture
def fetch():
    return Mock(return_value=STATION_DIRECTORY)


@pytest.fixture
def index(fetch):
    return StationIndex(STATIONS_URL, timeout=5, fetch=fetch)


class TestHaversine:
    """Tests for great-circle distance."""

    def test_same_point_is_zero(self):
        point = Coordinate(27.9, -82.8)
        assert haversine_km(point, point) == 0.0

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is about 111.2 km."""
        d = haversine_km(Coordinate(0, 0), Coordinate(1, 0))
        assert d == pytest.approx(111.19, abs=0.05)

    def test_known_city_pair(self):
        """San Francisco to Los Angeles is roughly 559 km."""
        d = haversine_km(Coordinate(37.7749, -122.4194), Coordinate(34.0522, -118.2437))
        assert d == pytest.approx(559, abs=5)

    def test_antimeridian(self):
        """Distance wraps across the date line."""
        d = haversine_km(Coordinate(0, 179.5), Coordinate(0, -179.5))
        assert d == pytest.approx(111.19, abs=0.1)


class TestNearestStation:
    """Tests for nearest-station selection."""

    def test_exact_station_coordinate(self, index):
        """A point on a station returns it at distance 0."""
        match = index.nearest_station(Coordinate(37.8063, -122.4659))
        assert match.station.id == '9414290'
        assert match.distance_km == pytest.approx(0.0, abs=1e-6)

    def test_nearby_point(self, index):
        """Tampa resolves to the St. Petersburg station."""
        loc = TEST_LOCATIONS['tampa']
        match = index.nearest_station(Coordinate(loc['lat'], loc['lon']))
        assert match.station.id == '8726520'
        assert 0 < match.distance_km < 50

    def test_beyond_radius_is_none(self, index):
        """An inland point far from every station finds nothing."""
        loc = TEST_LOCATIONS['kansas']
        assert index.nearest_station(Coordinate(loc['lat'], loc['lon'])) is None

    def test_custom_radius(self, index):
        """A tight radius excludes a station a larger one accepts."""
        tampa = Coordinate(27.9, -82.8)
        assert index.nearest_station(tampa, max_radius_km=5) is None
        assert index.nearest_station(tampa, max_radius_km=50) is not None


class TestDirectoryLoading:
    """Tests for directory memoisation and failure handling."""

    def test_directory_loaded_once(self, index, fetch):
        index.nearest_station(Coordinate(27.9, -82.8))
        index.nearest_station(Coordinate(37.8, -122.4))
        index.load()
        assert fetch.call_count == 1
        fetch.assert_called_with(STATIONS_URL, timeout=5)

    def test_malformed_records_skipped(self):
        fetch = Mock(return_value={'stations': [
            {'id': '1', 'name': 'Good', 'lat': 10.0, 'lng': 10.0},
            {'id': '2', 'name': 'No coords'},
            {'id': '3', 'name': 'Bad lat', 'lat': 123.0, 'lng': 0.0},
            {'id': '4', 'name': 'Text', 'lat': 'north', 'lng': 0.0},
        ]})
        stations = StationIndex(STATIONS_URL, fetch=fetch).load()
        assert [s.id for s in stations] == ['1']

    def test_empty_directory_is_an_error(self):
        """An empty directory must not read as 'no station nearby'."""
        index = StationIndex(STATIONS_URL, fetch=Mock(return_value={'stations': []}))
        with pytest.raises(ProviderUnavailable):
            index.nearest_station(Coordinate(27.9, -82.8))

    def test_fetch_failure_propagates_and_allows_retry(self):
        fetch = Mock(side_effect=[ProviderUnavailable('down'), STATION_DIRECTORY])
        index = StationIndex(STATIONS_URL, fetch=fetch)

        with pytest.raises(ProviderUnavailable):
            index.load()
        assert len(index.load()) == 4
        assert fetch.call_count == 2

    def test_concurrent_callers_share_one_fetch(self):
        """Callers arriving during the first load wait for it."""
        started = threading.Event()

        def slow_fetch(url, timeout):
            started.set()
            time.sleep(0.2)
            return STATION_DIRECTORY

        fetch = Mock(side_effect=slow_fetch)
        index = StationIndex(STATIONS_URL, fetch=fetch)
        results = []

        def worker():
            results.append(len(index.load()))

        first = threading.Thread(target=worker)
        first.start()
        started.wait(timeout=2)
        others = [threading.Thread(target=worker) for _ in range(5)]
        for t in others:
            t.start()
        for t in [first] + others:
            t.join(timeout=5)

        assert results == [4] * 6
        assert fetch.call_count == 1

    def test_concurrent_callers_see_failure(self):
        """Waiters receive the same error when the shared load fails."""
        started = threading.Event()

        def failing_fetch(url, timeout):
            started.set()
            time.sleep(0.2)
            raise ProviderUnavailable('down')

        index = StationIndex(STATIONS_URL, fetch=Mock(side_effect=failing_fetch))
        errors = []

        def worker():
            try:
                index.load()
            except ProviderUnavailable as e:
                errors.append(e)

        first = threading.Thread(target=worker)
        first.start()
        started.wait(timeout=2)
        second = threading.Thread(target=worker)
        second.start()
        first.join(timeout=5)
        second.join(timeout=5)

        assert len(errors) == 2
