"""
CountyStats - Tests for the Cache-Aside Resolver

Covers hit/miss behaviour, back-fill, degraded records and cache outages.
"""

from unittest.mock import MagicMock

import pytest

from countystats.cache.region_cache import InMemoryRegionCache
from countystats.cache.resolver import CacheAsideResolver
from countystats.exceptions import CacheUnavailableError, TotalFetchError
from countystats.models import RegionRecord
from countystats.stats.fetcher import CountyStatsFetcher


NY_TOTAL = {"name": "New York", "pa_count": 12, "pa_mean": 4, "county_acres": 21000, "pa_acres": 900}
NY_GAP = [{"gap_sts": "1", "total": 3, "acres": 120, "mean": 40}]


@pytest.fixture
def summary():
    return MagicMock(return_value=NY_TOTAL)


@pytest.fixture
def gap_status():
    return MagicMock(return_value=NY_GAP)


@pytest.fixture
def fetcher(summary, gap_status):
    return CountyStatsFetcher(sub_fetches={"total": summary, "gap_status": gap_status})


@pytest.fixture
def cache():
    return InMemoryRegionCache()


@pytest.fixture
def resolver(cache, fetcher):
    return CacheAsideResolver(cache, fetcher)


class TestCacheAsideResolver:
    """Test suite for CacheAsideResolver."""

    @pytest.mark.asyncio
    async def test_miss_fetches_stores_and_returns(self, resolver, cache, summary, gap_status):
        """Verify a cold key is fetched once, written once and returned."""
        record = await resolver.resolve("NY")

        assert record == RegionRecord({"total": NY_TOTAL, "gap_status": NY_GAP})
        assert cache.get("NY") == record
        assert summary.call_count == 1
        assert gap_status.call_count == 1
        assert resolver.stats.misses == 1
        assert resolver.stats.hits == 0
        assert resolver.stats.fills == 1

    @pytest.mark.asyncio
    async def test_second_resolve_is_a_hit_with_no_fetch(self, resolver, summary, gap_status):
        """Verify miss then hit returns identical records and fetches only once."""
        first = await resolver.resolve("NY")
        second = await resolver.resolve("NY")

        assert second == first
        assert summary.call_count == 1
        assert gap_status.call_count == 1
        assert resolver.stats.hits == 1
        assert resolver.stats.misses == 1

    @pytest.mark.asyncio
    async def test_hit_returns_cached_record_unmodified(self, resolver, cache, summary):
        """Verify a degraded cached record is returned as-is without re-fetching."""
        partial = RegionRecord({"total": {"pa_count": 3}})
        cache.set("BB", partial)

        record = await resolver.resolve("BB")

        assert record == partial
        summary.assert_not_called()

    @pytest.mark.asyncio
    async def test_hit_performs_no_write(self, fetcher):
        """Verify a cache hit never writes."""
        mock_cache = MagicMock()
        mock_cache.get.return_value = RegionRecord({"total": NY_TOTAL})
        resolver = CacheAsideResolver(mock_cache, fetcher)

        await resolver.resolve("NY")

        mock_cache.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_partial_fetch_is_cached(self, cache, summary):
        """Verify a degraded record from the fetcher is still stored."""
        fetcher = CountyStatsFetcher(sub_fetches={
            "total": summary,
            "gap_status": MagicMock(side_effect=RuntimeError("query canceled")),
        })
        resolver = CacheAsideResolver(cache, fetcher)

        record = await resolver.resolve("BB")

        assert record.sections == {"total": NY_TOTAL}
        assert cache.get("BB") == record

    @pytest.mark.asyncio
    async def test_total_fetch_failure_propagates_and_is_not_cached(self, cache):
        """Verify a total failure reaches the caller and nothing is stored."""
        failing = MagicMock(side_effect=ConnectionError("could not connect to server"))
        fetcher = CountyStatsFetcher(sub_fetches={"total": failing, "gap_status": failing})
        resolver = CacheAsideResolver(cache, fetcher)

        with pytest.raises(TotalFetchError):
            await resolver.resolve("NY")

        assert not cache.exists("NY")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_cache_get_failure_falls_through_to_fetch(self, fetcher, summary):
        """Verify a cache read outage is treated as a miss."""
        mock_cache = MagicMock()
        mock_cache.get.side_effect = CacheUnavailableError("get", "NY", "Connection refused")
        resolver = CacheAsideResolver(mock_cache, fetcher)

        record = await resolver.resolve("NY")

        assert record.sections == {"total": NY_TOTAL, "gap_status": NY_GAP}
        assert summary.call_count == 1
        assert resolver.stats.misses == 1
        assert resolver.stats.cache_errors == 1
        assert isinstance(resolver.stats.recent_errors[-1], CacheUnavailableError)
        assert resolver.stats.recent_errors[-1].operation == "get"

    @pytest.mark.asyncio
    async def test_corrupt_cached_value_is_refetched_and_replaced(self, resolver, cache, summary):
        """Verify an undecodable cached value is treated as a miss and overwritten."""
        cache._set_raw("county:NY", "not json{", "NY")

        record = await resolver.resolve("NY")

        assert record.sections == {"total": NY_TOTAL, "gap_status": NY_GAP}
        assert summary.call_count == 1
        assert resolver.stats.cache_errors == 1
        assert resolver.stats.fills == 1
        assert cache.get("NY") == record

    @pytest.mark.asyncio
    async def test_cache_set_failure_still_returns_record(self, fetcher):
        """Verify a failed back-fill does not fail the resolve."""
        mock_cache = MagicMock()
        mock_cache.get.return_value = None
        mock_cache.set.side_effect = CacheUnavailableError("set", "NY", "READONLY")
        resolver = CacheAsideResolver(mock_cache, fetcher)

        record = await resolver.resolve("NY")

        assert record.sections == {"total": NY_TOTAL, "gap_status": NY_GAP}
        mock_cache.set.assert_called_once_with("NY", record)
        assert resolver.stats.fills == 0
        assert resolver.stats.recent_errors[-1].operation == "set"

    @pytest.mark.asyncio
    async def test_key_is_passed_unmodified(self, cache, fetcher, summary):
        resolver = CacheAsideResolver(cache, fetcher)

        await resolver.resolve("Ny ")

        summary.assert_called_once_with("Ny ")
        assert cache.exists("Ny ")
        assert not cache.exists("NY")

    @pytest.mark.asyncio
    async def test_get_status_reports_counters(self, resolver):
        await resolver.resolve("NY")
        await resolver.resolve("NY")

        status = resolver.get_status()

        assert status["hits"] == 1
        assert status["misses"] == 1
        assert status["hit_ratio"] == 0.5
        assert "last_error" not in status
