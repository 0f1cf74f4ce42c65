"""
CountyStats - Bulk Cache Warming

Computes and stores the record for every county in the catalog.

BulkWarmer runs one fetch-and-store pipeline per county, concurrently,
bounded by a semaphore. Each pipeline is isolated: a failure is recorded
against that county and the others carry on.

CacheWarmWorker runs a warm cycle on a daemon thread so the request that
triggered it never waits for the outcome.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from countystats.exceptions import CatalogReadError, PerKeyWarmError
from countystats.models import WarmReport

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 8


class BulkWarmer:
    """
    Warms the cache for the full county catalog.

    Warm writes and resolver writes for the same county are not
    coordinated; whichever lands last is kept.
    """

    def __init__(
        self,
        cache,
        fetcher,
        catalog: Callable[[], List[str]],
        max_concurrent: int = DEFAULT_MAX_CONCURRENT
    ):
        """
        Initialize the warmer.

        Args:
            cache: RegionCache instance shared with the resolver
            fetcher: CountyStatsFetcher instance
            catalog: Blocking callable returning every county key
            max_concurrent: Maximum simultaneous fetch pipelines
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.cache = cache
        self.fetcher = fetcher
        self.catalog = catalog
        self.max_concurrent = max_concurrent

    async def read_catalog(self) -> List[str]:
        """
        Read every county key, fresh for this cycle.

        Raises:
            CatalogReadError: If the catalog cannot be read
        """
        try:
            keys = await asyncio.to_thread(self.catalog)
        except Exception as error:
            raise CatalogReadError(f"Failed to read county catalog: {error}") from error
        if keys is None:
            raise CatalogReadError("County catalog query returned no result")
        return list(keys)

    async def warm_all(self) -> WarmReport:
        """
        Run one warm cycle.

        Returns:
            WarmReport listing stored, degraded and failed counties

        Raises:
            CatalogReadError: If the catalog cannot be read
        """
        cycle_start = time.time()
        keys = await self.read_catalog()
        report = WarmReport(total=len(keys), started_at=cycle_start)

        logger.info(
            f"[...] Warming cache for {len(keys)} counties "
            f"(concurrency: {self.max_concurrent})"
        )

        semaphore = asyncio.Semaphore(self.max_concurrent)
        async with asyncio.TaskGroup() as tg:
            for key in keys:
                tg.create_task(self._warm_key(key, semaphore, report))

        report.duration_ms = (time.time() - cycle_start) * 1000
        logger.info(
            f"[OK] Warm cycle complete: {len(report.stored)}/{report.total} stored, "
            f"{len(report.degraded)} degraded, {len(report.failed)} failed "
            f"in {report.duration_ms:.0f}ms"
        )
        return report

    async def _warm_key(self, key: str, semaphore: asyncio.Semaphore, report: WarmReport) -> None:
        """Fetch and store one county; never raises."""
        async with semaphore:
            try:
                record = await self.fetcher.fetch(key)
            except Exception as error:
                self._record_failure(report, PerKeyWarmError(key, "fetch", str(error)), error)
                return

            try:
                await asyncio.to_thread(self.cache.set, key, record)
            except Exception as error:
                self._record_failure(report, PerKeyWarmError(key, "store", str(error)), error)
                return

        report.stored.append(key)
        if not self.fetcher.is_complete(record):
            report.degraded.append(key)
        logger.info(f"CACHE WARM: county:{key}")

    def _record_failure(self, report: WarmReport, warm_error: PerKeyWarmError, cause: Exception) -> None:
        warm_error.__cause__ = cause
        report.failed[warm_error.key] = warm_error
        logger.error(f"[ERROR] {warm_error}")


class CacheWarmWorker:
    """
    Runs warm cycles in the background.

    trigger() returns immediately. A trigger that arrives while a cycle is
    still running is coalesced into that cycle.
    """

    def __init__(self, warmer: BulkWarmer):
        """
        Initialize the worker.

        Args:
            warmer: BulkWarmer to run on each trigger
        """
        self.warmer = warmer

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._warm_cycles = 0
        self._coalesced_triggers = 0
        self._last_report: Optional[WarmReport] = None
        self._last_error: Optional[Exception] = None
        self._last_finished_at: Optional[float] = None

    def trigger(self) -> bool:
        """
        Start a warm cycle on a background thread.

        Returns:
            True if a new cycle was started, False if one was already running
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                self._coalesced_triggers += 1
                logger.warning("[WARN] Cache warm already running - trigger coalesced")
                return False

            self._thread = threading.Thread(
                target=self._run_cycle,
                name="CacheWarmWorker",
                daemon=True
            )
            self._thread.start()

        logger.info("[OK] Cache warm triggered")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current cycle finishes.

        Returns:
            True if no cycle is running afterwards
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        return not self.is_running

    def _run_cycle(self) -> None:
        """Thread target - one full warm cycle with its own event loop."""
        try:
            report = asyncio.run(self.warmer.warm_all())
            self._last_report = report
            self._last_error = None
        except Exception as error:
            self._last_error = error
            logger.error(f"[ERROR] Cache warm cycle failed: {error}", exc_info=True)
        finally:
            self._warm_cycles += 1
            self._last_finished_at = time.time()

    @property
    def is_running(self) -> bool:
        """Check if a warm cycle is currently running."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def last_report(self) -> Optional[WarmReport]:
        return self._last_report

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def get_status(self) -> Dict[str, Any]:
        """Get current worker status for monitoring."""
        return {
            "running": self.is_running,
            "warm_cycles": self._warm_cycles,
            "coalesced_triggers": self._coalesced_triggers,
            "max_concurrent": self.warmer.max_concurrent,
            "last_finished_at": self._last_finished_at,
            "last_report": self._last_report.summary() if self._last_report else None,
            "last_error": str(self._last_error) if self._last_error else None
        }
