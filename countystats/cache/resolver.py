"""
CountyStats - Cache-Aside Resolver

Serves a county record from the cache when present, otherwise fetches it,
back-fills the cache and returns it.

Cache failures never fail a resolve: a failed read is a miss and a failed
write is logged and dropped, since the record is already in hand.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from countystats.exceptions import CacheUnavailableError
from countystats.models import CacheStats, RegionRecord

logger = logging.getLogger(__name__)


class CacheAsideResolver:
    """
    Read-through resolver for county statistics.

    Per call: one hit or miss observation, at most one fetch and at most
    one cache write (only on a miss). Cached records are returned as-is,
    degraded ones included.
    """

    def __init__(self, cache, fetcher, stats: Optional[CacheStats] = None):
        """
        Initialize the resolver.

        Args:
            cache: RegionCache instance shared with the warmer
            fetcher: CountyStatsFetcher instance
            stats: Optional shared observation counters
        """
        self.cache = cache
        self.fetcher = fetcher
        self.stats = stats or CacheStats()

    async def resolve(self, key: str) -> RegionRecord:
        """
        Return the record for a county.

        Raises:
            TotalFetchError: If the record is not cached and cannot be fetched
        """
        cached = await self._cache_get(key)
        if cached is not None:
            self.stats.record_hit()
            logger.info(f"CACHE HIT: county:{key}")
            return cached

        self.stats.record_miss()
        logger.info(f"CACHE MISS: county:{key}")

        record = await self.fetcher.fetch(key)

        if await self._cache_set(key, record):
            self.stats.record_fill()
            logger.info(f"CACHE FILL: county:{key}")
        return record

    async def _cache_get(self, key: str) -> Optional[RegionRecord]:
        try:
            return await asyncio.to_thread(self.cache.get, key)
        except CacheUnavailableError as error:
            self.stats.record_error(error)
            logger.warning(f"[WARN] {error} - falling through to fetch")
            return None

    async def _cache_set(self, key: str, record: RegionRecord) -> bool:
        try:
            await asyncio.to_thread(self.cache.set, key, record)
            return True
        except CacheUnavailableError as error:
            self.stats.record_error(error)
            logger.error(f"[ERROR] {error} - returning uncached record")
            return False

    def get_status(self) -> Dict[str, Any]:
        """Get resolver observation counters for monitoring."""
        status = self.stats.as_dict()
        if self.stats.recent_errors:
            status["last_error"] = str(self.stats.recent_errors[-1])
        return status
