"""
CountyStats - Store Package

PostGIS connection management and county aggregation queries.
"""

from countystats.store.postgis import (
    PostgisConnection,
    CountyStatsStore,
)

__all__ = [
    "PostgisConnection",
    "CountyStatsStore",
]
