"""
CountyStats - Web Package

Flask endpoint for county statistics and cache warming.
"""

from countystats.web.app import create_app

__all__ = ["create_app"]
