"""
Unit tests for the cache manager.
"""

import pytest

from service_offline.app.caching.cache_manager import CacheManager
from service_offline.app.models import WorkerResponse


class TestCacheManager:
    """Test cases for CacheManager."""

    @pytest.fixture
    def manager(self, storage, network, cache_names, metrics):
        return CacheManager(
            storage,
            network,
            cache_names,
            preload_urls=["/api/tags", "/api/categories"],
            preload_concurrency=2,
            metrics=metrics,
        )

    @pytest.mark.asyncio
    async def test_list_caches_reports_counts_and_sizes(self, manager, storage):
        static = await storage.open("blog-static-v2")
        await static.put("/", WorkerResponse(200, {}, b"12345", "/"))
        await static.put("/offline", WorkerResponse(200, {}, b"123", "/offline"))
        await storage.open("blog-dynamic-v2")

        infos = await manager.list_caches()

        assert [info.name for info in infos] == ["blog-static-v2", "blog-dynamic-v2"]
        assert infos[0].entry_count == 2
        assert infos[0].total_bytes == 8
        assert infos[0].last_updated is not None
        assert infos[1].entry_count == 0
        assert infos[1].last_updated is None

    @pytest.mark.asyncio
    async def test_clear_cache(self, manager, storage):
        await storage.open("blog-static-v2")

        assert await manager.clear_cache("blog-static-v2")
        assert not await manager.clear_cache("blog-static-v2")

    @pytest.mark.asyncio
    async def test_clear_all_is_idempotent(self, manager, storage):
        await storage.open("blog-static-v2")
        await storage.open("blog-dynamic-v2")

        assert await manager.clear_all() == 2
        assert await manager.list_caches() == []
        assert await manager.clear_all() == 0
        assert await manager.list_caches() == []

    @pytest.mark.asyncio
    async def test_preload_adds_exactly_the_requested_entries(self, manager, storage, network, cache_names):
        network.add("/api/tags", [{"id": 1}])
        network.add("/api/categories", [{"id": 2}])

        summary = await manager.preload()

        assert summary.planned == 2
        assert sorted(summary.cached) == ["/api/categories", "/api/tags"]
        assert summary.failed == {}
        dynamic = await storage.open(cache_names.dynamic)
        assert sorted(await dynamic.keys()) == ["/api/categories", "/api/tags"]
        infos = await manager.list_caches()
        assert sum(info.entry_count for info in infos) == 2

    @pytest.mark.asyncio
    async def test_preload_tolerates_individual_failures(self, manager, storage, network, cache_names, metrics):
        network.add("/api/tags", [{"id": 1}])
        network.add("/dashboard", "nope", status=500)
        network.failing.add("/api/categories")

        summary = await manager.preload(["/api/tags", "/api/categories", "/dashboard"])

        assert summary.cached == ["/api/tags"]
        assert set(summary.failed) == {"/api/categories", "/dashboard"}
        assert summary.failed["/dashboard"] == "status 500"
        dynamic = await storage.open(cache_names.dynamic)
        assert await dynamic.keys() == ["/api/tags"]
        results = [labels["result"] for name, labels in metrics.counters if name == "cache_preload_total"]
        assert sorted(results) == ["cached", "error", "rejected"]

    @pytest.mark.asyncio
    async def test_preload_skipped_while_offline(self, manager, network):
        network.online = False

        summary = await manager.preload()

        assert summary.skipped == "offline"
        assert summary.cached == []
        assert network.calls == []

    @pytest.mark.asyncio
    async def test_unavailable_storage(self, network, cache_names):
        manager = CacheManager(None, network, cache_names, preload_urls=["/api/tags"])

        assert not manager.available
        assert await manager.list_caches() == []
        assert await manager.clear_all() == 0
        assert not await manager.clear_cache("blog-static-v2")
        summary = await manager.preload()
        assert summary.skipped == "cache_unavailable"
        assert network.calls == []

    @pytest.mark.asyncio
    async def test_status(self, manager, storage):
        store = await storage.open("blog-static-v2")
        await store.put("/", WorkerResponse(200, {}, b"abc", "/"))

        status = await manager.status()

        assert status["online"] is True
        assert status["cache_available"] is True
        assert status["cache_version"] == "v2"
        assert status["caches"] == 1
        assert status["total_entries"] == 1
        assert status["total_bytes"] == 3
