"""
TTL key-value cache for tide datasets and other derived results.

Entries live in memory and, when a path is given, are mirrored to a JSON file
so they survive process restarts. Expired entries read as misses; there is
no other eviction.
"""
import json
import logging
import os
import tempfile
import threading
import time
from typing import Any, Callable, Dict, Optional

from .models import Coordinate

logger = logging.getLogger(__name__)


def coord_key(kind: str, coordinate: Coordinate, precision: int = 1) -> str:
    """
    Build a cache key from a coordinate rounded to ``precision`` decimals.

    One decimal degree groups requests into roughly 10 km buckets.
    """
    return f"{kind}_{coordinate.latitude:.{precision}f}_{coordinate.longitude:.{precision}f}"


class ResultCache:
    """Thread-safe TTL cache with optional JSON-file persistence."""

    def __init__(self, path: Optional[str] = None, time_func: Callable[[], float] = time.time):
        self.path = path
        self._time_func = time_func
        self._lock = threading.Lock()
        # key -> {'value': ..., 'expires_at': epoch seconds}
        self._entries: Dict[str, Dict[str, Any]] = {}
        if path:
            self._entries = self._load_file(path)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._time_func() >= entry['expires_at']:
                del self._entries[key]
                return None
            return entry['value']

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = {
                'value': value,
                'expires_at': self._time_func() + ttl_seconds,
            }
            self._persist()

    def invalidate(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._persist()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._persist()

    def stats(self) -> Dict[str, int]:
        """Entry counts for diagnostics (expired entries are not dropped here)."""
        with self._lock:
            now = self._time_func()
            valid = sum(1 for e in self._entries.values() if now < e['expires_at'])
            return {
                'total_entries': len(self._entries),
                'valid_entries': valid,
                'expired_entries': len(self._entries) - valid,
            }

    def _load_file(self, path: str) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(path):
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache file {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed cache file {path}")
            return {}
        return {
            k: v for k, v in data.items()
            if isinstance(v, dict) and 'value' in v and 'expires_at' in v
        }

    def _persist(self) -> None:
        # Caller holds the lock
        if not self.path:
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.fishcast-cache-')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._entries, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            # Memory copy stays authoritative for this process
            logger.warning(f"Could not persist cache to {self.path}: {e}")
