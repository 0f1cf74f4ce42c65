"""
CountyStats - Stats Package

Fetching and merging of per-county statistics sections.
"""

from countystats.stats.fetcher import CountyStatsFetcher

__all__ = ["CountyStatsFetcher"]
