"""
CountyStats - Protected Area Statistics per County

This package serves per-county protected-area statistics (feature counts,
acreage, GAP status breakdowns) computed in PostGIS, through a read-through
Redis cache with bulk cache warming.
"""

__version__ = "26.10.18"
__author__ = "NYPAD Data Services"
