"""
CountyStats - Web Application

Flask endpoint for county statistics.

    GET /api/county?q=NY                 -> county record (JSON)
    GET /api/county?action=warmcache     -> start a background warm cycle
    GET /health                          -> resolver, warm worker and cache status
"""

import asyncio
import logging

from flask import Flask, current_app, jsonify, request

from countystats.exceptions import TotalFetchError

logger = logging.getLogger(__name__)

WARM_ACTION = "warmcache"


def create_app(resolver, warm_worker, cache=None) -> Flask:
    """
    Create the Flask application.

    Args:
        resolver: CacheAsideResolver serving single counties
        warm_worker: CacheWarmWorker running background warm cycles
        cache: Optional RegionCache reported on by /health

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.extensions["countystats"] = {
        "resolver": resolver,
        "warm_worker": warm_worker,
        "cache": cache,
    }

    app.add_url_rule("/api/county", "county_data", county_data)
    app.add_url_rule("/health", "health", health)
    return app


def _component(name: str):
    return current_app.extensions["countystats"][name]


def county_data():
    """
    County statistics endpoint.

    A warm request starts a background cycle and does not report on it.
    Without a county query parameter there is nothing to resolve.
    """
    if request.args.get("action") == WARM_ACTION:
        logger.info("[...] Cache warm requested")
        _component("warm_worker").trigger()

    county = request.args.get("q")
    if not county:
        return "", 204

    try:
        record = asyncio.run(_component("resolver").resolve(county))
    except TotalFetchError as error:
        logger.error(f"[ERROR] {error}")
        return jsonify({"error": "County statistics unavailable", "county": county}), 502

    return jsonify(record.to_dict())


def health():
    """Report resolver counters, warm worker status and cache connectivity."""
    cache = _component("cache")
    cache_connected = cache.is_connected() if cache is not None else None
    return jsonify({
        "status": "ok" if cache_connected is not False else "degraded",
        "cache_connected": cache_connected,
        "resolver": _component("resolver").get_status(),
        "warm": _component("warm_worker").get_status(),
    })
