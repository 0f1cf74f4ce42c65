"""
CountyStats - County Statistics Fetcher

Builds the combined statistics record for one county by running the
section queries concurrently and merging whatever succeeded.

A failing section is logged and left out of the record instead of
aborting its siblings. Only when every section fails is the fetch
treated as a total failure.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from countystats.exceptions import SubFetchError, TotalFetchError
from countystats.models import (
    SECTION_GAP_STATUS,
    SECTION_TOTAL,
    RegionRecord,
    SectionResult,
)

logger = logging.getLogger(__name__)

SubFetch = Callable[[str], Any]


class CountyStatsFetcher:
    """
    Fetches and merges the statistics sections for a county.

    Sub-fetches are blocking callables (one per section) run in worker
    threads with asyncio.to_thread and gathered together.
    """

    def __init__(
        self,
        store=None,
        sub_fetches: Optional[Mapping[str, SubFetch]] = None
    ):
        """
        Initialize the fetcher.

        Args:
            store: CountyStatsStore providing the default section queries
            sub_fetches: Optional explicit mapping of section name -> callable
        """
        if sub_fetches is None:
            if store is None:
                raise ValueError("Either a store or explicit sub_fetches is required")
            sub_fetches = {
                SECTION_TOTAL: store.get_county_summary,
                SECTION_GAP_STATUS: store.get_county_gap_status,
            }
        self.sub_fetches: Dict[str, SubFetch] = dict(sub_fetches)

    @property
    def expected_sections(self) -> Tuple[str, ...]:
        return tuple(self.sub_fetches)

    def is_complete(self, record: RegionRecord) -> bool:
        """True if the record carries every section this fetcher produces."""
        return record.is_complete(self.expected_sections)

    async def fetch(self, key: str) -> RegionRecord:
        """
        Fetch the merged record for a county.

        Args:
            key: County abbreviation, passed through unmodified

        Returns:
            RegionRecord with every section that succeeded

        Raises:
            TotalFetchError: If no section could be fetched
        """
        results = await self.fetch_sections(key)

        errors = {result.section: result.error for result in results if not result.ok}
        if errors and len(errors) == len(results):
            raise TotalFetchError(key, errors)

        record = RegionRecord()
        for result in results:
            if result.ok:
                record.sections[result.section] = result.data

        if errors:
            logger.warning(
                f"[WARN] Degraded record for county:{key} "
                f"(missing: {', '.join(sorted(errors))})"
            )
        return record

    async def fetch_sections(self, key: str) -> List[SectionResult]:
        """Run every sub-fetch concurrently and return one result per section."""
        return list(await asyncio.gather(*(
            self._run_sub_fetch(section, sub_fetch, key)
            for section, sub_fetch in self.sub_fetches.items()
        )))

    async def _run_sub_fetch(self, section: str, sub_fetch: SubFetch, key: str) -> SectionResult:
        try:
            data = await asyncio.to_thread(sub_fetch, key)
            return SectionResult(section=section, data=data)
        except Exception as error:
            sub_error = SubFetchError(section, key, str(error))
            sub_error.__cause__ = error
            logger.error(f"[ERROR] {sub_error}")
            return SectionResult(section=section, error=sub_error)
