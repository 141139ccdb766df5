"""Tests for the cost cache and its single-flight computation."""

import asyncio
from pathlib import Path

import pytest

from pkgrater.costs.cache import InMemoryCostCache, JsonCostCache
from pkgrater.models.schemas import CostRecord, CostStatus


def completed(package_id: str, standalone: float = 1.0, total: float = 2.0) -> CostRecord:
    return CostRecord(
        package_id=package_id,
        standalone_cost=standalone,
        total_cost=total,
        cost_status=CostStatus.COMPLETED,
    )


class TestGetOrCompute:
    """Tests for CostCache.get_or_compute."""

    @pytest.mark.anyio
    async def test_completed_record_skips_compute(self) -> None:
        """A completed record is returned without computing."""
        cache = InMemoryCostCache()
        cache.put(completed("1"))

        async def compute() -> CostRecord:
            raise AssertionError("should not compute")

        record = await cache.get_or_compute("1", compute)
        assert record.total_cost == 2.0

    @pytest.mark.anyio
    async def test_concurrent_callers_share_one_computation(self) -> None:
        """Concurrent requests for the same id run the computation once."""
        cache = InMemoryCostCache()
        release = asyncio.Event()
        calls = 0

        async def compute() -> CostRecord:
            nonlocal calls
            calls += 1
            await release.wait()
            record = completed("1")
            cache.put(record)
            return record

        first = asyncio.ensure_future(cache.get_or_compute("1", compute))
        second = asyncio.ensure_future(cache.get_or_compute("1", compute))
        await asyncio.sleep(0)
        assert cache.is_in_flight("1")

        release.set()
        results = await asyncio.gather(first, second)

        assert calls == 1
        assert results[0] == results[1]
        assert not cache.is_in_flight("1")

    @pytest.mark.anyio
    async def test_abandoned_caller_does_not_cancel(self) -> None:
        """A caller that stops waiting leaves the computation running."""
        cache = InMemoryCostCache()
        release = asyncio.Event()

        async def compute() -> CostRecord:
            await release.wait()
            record = completed("1")
            cache.put(record)
            return record

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(cache.get_or_compute("1", compute), timeout=0.01)

        release.set()
        record = await cache.get_or_compute("1", compute)
        assert record.is_completed
        assert cache.get("1") == record

    @pytest.mark.anyio
    async def test_exception_propagates_and_clears(self) -> None:
        """A failing computation raises for every caller and can be retried."""
        cache = InMemoryCostCache()

        async def compute() -> CostRecord:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("1", compute)
        assert not cache.is_in_flight("1")


class TestGetOrLoad:
    """Tests for CostCache.get_or_load."""

    @pytest.mark.anyio
    async def test_pending_record_skips_load(self) -> None:
        """Any cached record, pending included, is returned without loading."""
        cache = InMemoryCostCache()
        cache.put(CostRecord(package_id="1", standalone_cost=1.0, cost_status=CostStatus.PENDING))

        async def load() -> CostRecord:
            raise AssertionError("should not load")

        record = await cache.get_or_load("1", load)
        assert record.cost_status == CostStatus.PENDING

    @pytest.mark.anyio
    async def test_concurrent_loads_share_one_task(self) -> None:
        """Concurrent loads of one id run the loader once."""
        cache = InMemoryCostCache()
        release = asyncio.Event()
        calls = 0

        async def load() -> CostRecord:
            nonlocal calls
            calls += 1
            await release.wait()
            record = CostRecord(package_id="1", standalone_cost=1.0, cost_status=CostStatus.PENDING)
            cache.put(record)
            return record

        loads = [asyncio.ensure_future(cache.get_or_load("1", load)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*loads)

        assert calls == 1
        assert all(r == results[0] for r in results)
        assert cache.get("1") == results[0]

    @pytest.mark.anyio
    async def test_load_inside_computation(self) -> None:
        """A computation can load its own id without waiting on itself."""
        cache = InMemoryCostCache()

        async def load() -> CostRecord:
            record = CostRecord(package_id="1", standalone_cost=1.0, cost_status=CostStatus.PENDING)
            cache.put(record)
            return record

        async def compute() -> CostRecord:
            loaded = await cache.get_or_load("1", load)
            record = completed("1", standalone=loaded.standalone_cost, total=1.0)
            cache.put(record)
            return record

        record = await asyncio.wait_for(cache.get_or_compute("1", compute), timeout=1)
        assert record.is_completed


class TestCacheStorage:
    """Tests for cache storage."""

    def test_reset(self) -> None:
        """Reset drops every record."""
        cache = InMemoryCostCache()
        cache.put(completed("1"))
        cache.reset()
        assert cache.get("1") is None
        assert cache.records() == []

    def test_json_round_trip(self, tmp_path: Path) -> None:
        """Records survive a reload."""
        path = tmp_path / "cost_cache.json"
        JsonCostCache(path).put(completed("1", 1.5, 4.0))

        record = JsonCostCache(path).get("1")
        assert record is not None
        assert record.total_cost == 4.0
        assert record.cost_status == CostStatus.COMPLETED
