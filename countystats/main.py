"""
CountyStats - Main Entry Point

Command line entry point for warming the cache, resolving a single county
and running the development server.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from countystats.exceptions import CatalogReadError, TotalFetchError
from countystats.services import Services, build_services
from countystats.utils.config import Config
from countystats.utils.logging_config import setup_logging


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        description="CountyStats - County protected area statistics cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Warm the cache for every county and wait for the report
  python -m countystats.main --warm

  # Resolve one county through the cache
  python -m countystats.main --resolve NY

  # Run the development server
  python -m countystats.main --serve --port 8050
        """
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--warm",
        action="store_true",
        help="Run one full cache warm cycle"
    )
    mode_group.add_argument(
        "--resolve",
        metavar="COUNTY",
        help="Resolve one county abbreviation through the cache"
    )
    mode_group.add_argument(
        "--serve",
        action="store_true",
        help="Run the Flask development server"
    )
    mode_group.add_argument(
        "--test",
        action="store_true",
        help="Run connection tests only"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8050,
        help="Port for --serve (default: 8050)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args()


def run_warm(services: Services) -> bool:
    """
    Run a warm cycle in the foreground.

    Returns:
        True if every county was stored
    """
    logger = logging.getLogger(__name__)
    try:
        report = asyncio.run(services.warmer.warm_all())
    except CatalogReadError as error:
        logger.error(f"[ERROR] {error}")
        return False

    print(json.dumps(report.summary(), indent=2))
    return not report.failed


def run_resolve(services: Services, county: str) -> bool:
    """
    Resolve one county and print its record.

    Returns:
        True if a record was produced
    """
    logger = logging.getLogger(__name__)
    try:
        record = asyncio.run(services.resolver.resolve(county))
    except TotalFetchError as error:
        logger.error(f"[ERROR] {error}")
        return False

    print(json.dumps(record.to_dict(), indent=2))
    if not services.fetcher.is_complete(record):
        logger.warning(f"[WARN] Record is degraded (missing: {record.missing_sections(services.fetcher.expected_sections)})")
    return True


def run_serve(services: Services, port: int) -> bool:
    """Run the Flask development server until interrupted."""
    from countystats.web.app import create_app

    app = create_app(services.resolver, services.warm_worker, services.cache)
    app.run(host="0.0.0.0", port=port, threaded=True)
    return True


def run_tests(services: Services) -> bool:
    """
    Run connection tests for PostGIS and Redis.

    Returns:
        True if all tests passed
    """
    logger = logging.getLogger(__name__)
    logger.info("[INFO] Running connection tests")

    all_passed = services.connection.test_connection()

    logger.info("[...] Testing Redis connection")
    if services.cache.is_connected():
        logger.info("[OK] Redis connection successful")
    else:
        logger.error("[ERROR] Redis connection failed")
        all_passed = False

    if all_passed:
        logger.info("[DONE] All connection tests passed")
    else:
        logger.error("[ERROR] Some connection tests failed")
    return all_passed


def main() -> int:
    """
    Main entry point for CountyStats.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = parse_arguments()
    log_level = logging.DEBUG if args.verbose else logging.INFO

    # The log directory comes from config, so file logging starts after it loads
    try:
        config = Config()
    except Exception as error:
        logging.basicConfig(level=log_level, format="%(asctime)s | %(levelname)-8s | %(message)s")
        logging.getLogger(__name__).error(f"[ERROR] Failed to load configuration: {error}")
        return 1

    setup_logging(level=log_level, log_dir=config.log_dir)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("CountyStats - Starting")
    logger.info(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)
    logger.info(f"[OK] Configuration loaded (logs: {config.log_dir})")

    try:
        services = build_services(config)
    except Exception as error:
        logger.error(f"[ERROR] Failed to start services: {error}")
        return 1

    success = False
    try:
        if args.test:
            success = run_tests(services)
        elif args.warm:
            success = run_warm(services)
        elif args.resolve:
            success = run_resolve(services, args.resolve)
        elif args.serve:
            success = run_serve(services, args.port)

    except KeyboardInterrupt:
        logger.warning("[WARN] Operation interrupted by user")
        return 130

    except Exception as error:
        logger.error(f"[ERROR] Operation failed: {error}", exc_info=True)
        return 1

    finally:
        services.close()

    logger.info("=" * 60)
    if success:
        logger.info("[DONE] CountyStats - Complete")
    else:
        logger.error("[ERROR] CountyStats - Failed")
    logger.info("=" * 60)

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
