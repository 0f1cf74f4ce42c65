"""
CountyStats - Service Wiring

Builds the shared store, cache, fetcher, resolver and warm worker from a
Config. The web app, the WSGI entry point and the CLI all start here.
"""

import logging
from dataclasses import dataclass

from countystats.cache.region_cache import RedisRegionCache, RegionCache
from countystats.cache.resolver import CacheAsideResolver
from countystats.cache.warmer import BulkWarmer, CacheWarmWorker
from countystats.stats.fetcher import CountyStatsFetcher
from countystats.store.postgis import CountyStatsStore, PostgisConnection
from countystats.utils.config import Config

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators shared by every request."""
    connection: PostgisConnection
    store: CountyStatsStore
    cache: RegionCache
    fetcher: CountyStatsFetcher
    resolver: CacheAsideResolver
    warmer: BulkWarmer
    warm_worker: CacheWarmWorker

    def close(self) -> None:
        self.connection.disconnect()


def build_services(config: Config) -> Services:
    """
    Create and connect every collaborator.

    Args:
        config: Application configuration

    Returns:
        Services bundle with one shared cache instance
    """
    connection = PostgisConnection(config.postgres)
    connection.connect()
    store = CountyStatsStore(connection)

    cache = RedisRegionCache(config.redis.url, key_prefix=config.redis.key_prefix)
    fetcher = CountyStatsFetcher(store)
    resolver = CacheAsideResolver(cache, fetcher)
    warmer = BulkWarmer(
        cache,
        fetcher,
        catalog=store.list_county_keys,
        max_concurrent=config.warm.max_concurrent
    )

    logger.info("[OK] County stats services ready")
    return Services(
        connection=connection,
        store=store,
        cache=cache,
        fetcher=fetcher,
        resolver=resolver,
        warmer=warmer,
        warm_worker=CacheWarmWorker(warmer)
    )
