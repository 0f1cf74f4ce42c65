"""
WSGI entry point for the CountyStats service.

This module wires the shared services and exposes the Flask app for
production WSGI servers like Gunicorn.

Usage with Gunicorn:
    gunicorn -c gunicorn_config.py wsgi:server
"""

import logging

from countystats.services import build_services
from countystats.utils.config import Config
from countystats.utils.logging_config import setup_logging
from countystats.web.app import create_app

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Global services (shared across threads of the single worker)
_services = None


def create_server():
    """
    Create and configure the Flask application.

    Returns:
        Flask app instance (for WSGI)
    """
    global _services

    config = Config()
    setup_logging(log_dir=config.log_dir)

    logger.info("=" * 60)
    logger.info("CountyStats - County Data Service (Gunicorn)")
    logger.info("=" * 60)

    _services = build_services(config)

    if _services.cache.is_connected():
        logger.info("[OK] Redis cache reachable")
    else:
        logger.warning("[WARN] Redis cache unreachable - requests will fall through to PostGIS")

    return create_app(_services.resolver, _services.warm_worker, _services.cache)


# Create the application
# This is called when Gunicorn imports this module
server = create_server()


def shutdown():
    """Cleanup function for graceful shutdown."""
    logger.info("[SHUTDOWN] Closing PostGIS pool...")
    if _services is not None:
        _services.close()
    logger.info("[SHUTDOWN] Shutdown complete")
