"""
Tide Provider Gateway

Resolves a TideDataset for a coordinate by trying, in order:

1. The fresh cache entry for the coordinate's ~10 km bucket, when it was
   fetched for a day window covering the request
2. Each eligible provider, sequentially (free NOAA first inside US waters,
   then metered WorldTides when an API key is configured)
3. The long-lived stale cache entry, flagged as stale

Providers are tried one at a time rather than in parallel: the metered
provider's budget must not be spent while the free provider can still answer.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from .exceptions import ProviderUnavailable
from .models import Coordinate, TideDataset, TideState, as_utc
from .result_cache import ResultCache, coord_key
from .tide_curve import state_at
from .tide_providers import TideProvider

logger = logging.getLogger(__name__)

FRESH_TTL_SECONDS = 6 * 60 * 60
STALE_TTL_SECONDS = 24 * 60 * 60


def _window_covers(payload: dict, start: datetime, days: int) -> bool:
    """
    Whether a cached payload was fetched for a UTC day window containing
    ``[start's date, start's date + days]``.

    Windows are compared in whole days, the granularity providers are
    queried at, so repeated requests within a day keep hitting the cache.
    """
    try:
        cached_start = date.fromisoformat(payload['window_start'])
        cached_days = int(payload['window_days'])
    except (KeyError, TypeError, ValueError):
        return False
    requested_start = start.date()
    return (
        cached_start <= requested_start
        and requested_start + timedelta(days=days) <= cached_start + timedelta(days=cached_days)
    )


class TideProviderGateway:
    """Provider failover with fresh and stale caching."""

    def __init__(
        self,
        providers: Sequence[TideProvider],
        cache: ResultCache,
        fresh_ttl: float = FRESH_TTL_SECONDS,
        stale_ttl: float = STALE_TTL_SECONDS,
    ):
        self.providers = list(providers)
        self.cache = cache
        self.fresh_ttl = fresh_ttl
        self.stale_ttl = stale_ttl

    def get_tide_dataset(
        self,
        coordinate: Coordinate,
        days: int = 1,
        now: Optional[datetime] = None,
    ) -> TideDataset:
        """
        Get tide extremes for a location.

        Args:
            coordinate: Query location
            days: Number of days requested (metered providers may cap this)
            now: Optional start instant, defaults to the current time

        Returns:
            TideDataset, with ``is_stale`` set when served from the stale entry

        Raises:
            ProviderUnavailable: If no provider answered and nothing stale is cached
        """
        start = as_utc(now) if now else datetime.now(timezone.utc)
        fresh_key = coord_key('tide', coordinate)
        stale_key = coord_key('tide_stale', coordinate)

        cached = self.cache.get(fresh_key)
        if cached is not None and _window_covers(cached, start, days):
            logger.debug(f"Tide cache hit for {fresh_key}")
            return TideDataset.from_dict(cached)

        for provider in self.providers:
            if not provider.covers(coordinate) or not provider.is_configured():
                continue
            try:
                dataset = provider.fetch(coordinate, days, now=start)
            except ProviderUnavailable as e:
                logger.warning(f"{provider.name} tide fetch failed: {e}")
                continue
            if not dataset.extremes:
                logger.warning(f"{provider.name} returned no tide extremes for {fresh_key}")
                continue

            payload = dataset.to_dict()
            payload['window_start'] = start.date().isoformat()
            payload['window_days'] = days
            self.cache.set(fresh_key, payload, self.fresh_ttl)
            self.cache.set(stale_key, payload, self.stale_ttl)
            logger.info(f"Fetched {len(dataset.extremes)} tide extremes from {provider.name}")
            return dataset

        stale = self.cache.get(stale_key)
        if stale is not None:
            logger.warning(f"All tide providers failed for {fresh_key}; serving stale data")
            return TideDataset.from_dict(stale).as_stale()

        raise ProviderUnavailable(
            f"No tide data available for location ({coordinate.latitude}, {coordinate.longitude})"
        )

    def current_state(self, coordinate: Coordinate, when: Optional[datetime] = None) -> TideState:
        """
        Tide state at ``when`` (default now), or unknown if no data is available.
        """
        when = as_utc(when) if when else datetime.now(timezone.utc)
        try:
            # Two days so a late-evening query still has a following extreme
            dataset = self.get_tide_dataset(coordinate, days=2, now=when)
        except ProviderUnavailable as e:
            logger.debug(f"Tide state unavailable: {e}")
            return TideState.unknown()
        return state_at(dataset, when)
