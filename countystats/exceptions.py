"""
CountyStats - Exceptions

Typed errors raised at each boundary (sub-fetch, fetch, catalog, warm, cache)
so callers and tests can act on the error kind instead of log output.
"""

from typing import Dict, Optional


class CountyStatsError(Exception):
    """Base class for all county statistics errors."""


class SubFetchError(CountyStatsError):
    """
    One section's data source failed.

    Recovered by the fetcher: the section is omitted from the merged record.
    """
    def __init__(self, section: str, key: str, message: str):
        super().__init__(f"Sub-fetch '{section}' failed for county:{key}: {message}")
        self.section = section
        self.key = key


class TotalFetchError(CountyStatsError):
    """
    The fetch layer produced no data at all for a key.

    Propagated to the resolver's caller and never cached.
    """
    def __init__(self, key: str, errors: Optional[Dict[str, SubFetchError]] = None):
        self.key = key
        self.errors = errors or {}
        sections = ", ".join(sorted(self.errors)) or "none"
        super().__init__(f"All sub-fetches failed for county:{key} (sections: {sections})")


class CatalogReadError(CountyStatsError):
    """The region catalog could not be read; the warm cycle is abandoned."""


class PerKeyWarmError(CountyStatsError):
    """One key's fetch-and-store pipeline failed during a warm cycle."""
    def __init__(self, key: str, stage: str, message: str):
        super().__init__(f"Warm {stage} failed for county:{key}: {message}")
        self.key = key
        self.stage = stage


class CacheUnavailableError(CountyStatsError):
    """
    The cache backend could not be reached.

    Reads treat this as a miss; writes log and continue.
    """
    def __init__(self, operation: str, key: Optional[str], message: str):
        target = f" county:{key}" if key is not None else ""
        super().__init__(f"Cache {operation}{target} failed: {message}")
        self.operation = operation
        self.key = key
