"""
CountyStats - Cache Module

Read-through caching of county statistics records, plus bulk warming of
the whole county catalog.
"""

from countystats.cache.region_cache import (
    RegionCache,
    RedisRegionCache,
    InMemoryRegionCache,
)
from countystats.cache.resolver import CacheAsideResolver
from countystats.cache.warmer import BulkWarmer, CacheWarmWorker

__all__ = [
    "RegionCache",
    "RedisRegionCache",
    "InMemoryRegionCache",
    "CacheAsideResolver",
    "BulkWarmer",
    "CacheWarmWorker",
]
