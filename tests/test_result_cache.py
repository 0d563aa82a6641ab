"""
Unit tests for the TTL result cache
"""
import json

import pytest

from fishcast.models import Coordinate
from fishcast.result_cache import ResultCache, coord_key


class TimeController:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return TimeController()


class TestCoordKey:
    """Tests for coordinate bucketing."""

    def test_one_decimal_default(self):
        assert coord_key('tide', Coordinate(27.94, -82.76)) == 'tide_27.9_-82.8'

    def test_precision(self):
        assert coord_key('tide', Coordinate(27.944, -82.756), precision=2) == 'tide_27.94_-82.76'

    def test_kind_prefix_separates_entries(self):
        point = Coordinate(10, 20)
        assert coord_key('tide', point) != coord_key('tide_stale', point)


class TestExpiry:
    """Tests for TTL handling."""

    def test_get_before_expiry(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('k', {'a': 1}, 10)
        clock.advance(9)
        assert cache.get('k') == {'a': 1}

    def test_get_at_expiry_is_miss(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('k', 'v', 10)
        clock.advance(10)
        assert cache.get('k') is None

    def test_missing_key(self, clock):
        assert ResultCache(time_func=clock).get('nope') is None

    def test_overwrite_resets_ttl(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('k', 'old', 10)
        clock.advance(8)
        cache.set('k', 'new', 10)
        clock.advance(8)
        assert cache.get('k') == 'new'


class TestManagement:
    """Tests for invalidate, clear and stats."""

    def test_invalidate(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('a', 1, 10)
        cache.set('b', 2, 10)
        cache.invalidate('a')
        cache.invalidate('missing')
        assert cache.get('a') is None
        assert cache.get('b') == 2

    def test_clear(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('a', 1, 10)
        cache.clear()
        assert cache.stats()['total_entries'] == 0

    def test_stats(self, clock):
        cache = ResultCache(time_func=clock)
        cache.set('short', 1, 5)
        cache.set('long', 2, 50)
        clock.advance(10)
        assert cache.stats() == {
            'total_entries': 2,
            'valid_entries': 1,
            'expired_entries': 1,
        }


class TestPersistence:
    """Tests for the JSON file mirror."""

    def test_survives_restart(self, tmp_path, clock):
        path = str(tmp_path / 'cache.json')
        ResultCache(path, time_func=clock).set('k', {'extremes': []}, 60)

        reloaded = ResultCache(path, time_func=clock)
        assert reloaded.get('k') == {'extremes': []}

    def test_expiry_survives_restart(self, tmp_path, clock):
        path = str(tmp_path / 'cache.json')
        ResultCache(path, time_func=clock).set('k', 'v', 60)

        clock.advance(61)
        assert ResultCache(path, time_func=clock).get('k') is None

    def test_clear_is_persisted(self, tmp_path, clock):
        path = tmp_path / 'cache.json'
        cache = ResultCache(str(path), time_func=clock)
        cache.set('k', 'v', 60)
        cache.clear()
        assert json.loads(path.read_text()) == {}

    def test_corrupt_file_starts_empty(self, tmp_path, clock):
        path = tmp_path / 'cache.json'
        path.write_text('{not json')
        cache = ResultCache(str(path), time_func=clock)
        assert cache.stats()['total_entries'] == 0
        cache.set('k', 'v', 60)
        assert json.loads(path.read_text())['k']['value'] == 'v'

    def test_malformed_entries_dropped(self, tmp_path, clock):
        path = tmp_path / 'cache.json'
        path.write_text(json.dumps({
            'good': {'value': 1, 'expires_at': clock() + 100},
            'bad': 'not an entry',
        }))
        cache = ResultCache(str(path), time_func=clock)
        assert cache.get('good') == 1
        assert cache.stats()['total_entries'] == 1

    def test_unwritable_path_keeps_memory_copy(self, tmp_path, clock):
        path = str(tmp_path / 'missing-dir' / 'cache.json')
        cache = ResultCache(path, time_func=clock)
        cache.set('k', 'v', 60)
        assert cache.get('k') == 'v'
