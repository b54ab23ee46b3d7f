"""
Caching strategies.

Each strategy turns a request into a response using the cache storage and
the network. Network failures never escape a strategy: they fall back to a
cached entry or to a synthetic offline response.
"""

import time
from enum import Enum
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from shared.logging import get_logger, set_cache_context
from shared.errors import NetworkError
from ..caching.cache_names import CacheNames
from ..caching.cache_store import CacheStorage
from ..models import WorkerRequest, WorkerResponse
from ..routing.classifier import RouteCategory, is_image
from ..tasks import DetachedTaskGroup

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class Strategy(str, Enum):
    """Caching strategies."""
    CACHE_FIRST = "cache_first"
    NETWORK_FIRST = "network_first"
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"
    CACHE_ONLY = "cache_only"


CATEGORY_STRATEGIES: Dict[RouteCategory, Strategy] = {
    RouteCategory.STATIC: Strategy.CACHE_FIRST,
    RouteCategory.API: Strategy.NETWORK_FIRST,
    RouteCategory.DASHBOARD: Strategy.NETWORK_FIRST,
    RouteCategory.DEFAULT: Strategy.NETWORK_FIRST,
    RouteCategory.POST: Strategy.STALE_WHILE_REVALIDATE,
}

OFFLINE_API_BODY = {"error": "Offline - Please check your connection", "cached": True}

OFFLINE_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Offline</title></head>
<body>
<main>
<h1>You're offline</h1>
<p>This page isn't available without a connection. Pages you've visited before are still readable.</p>
</main>
</body>
</html>
"""

IMAGE_PLACEHOLDER_SVG = """<svg width="200" height="200" xmlns="http://www.w3.org/2000/svg">
  <rect width="200" height="200" fill="#f3f4f6"/>
  <text x="100" y="100" text-anchor="middle" fill="#9ca3af" font-family="Arial" font-size="14">
    Image not available
  </text>
</svg>
"""


def offline_api_response(url: str = "") -> WorkerResponse:
    return WorkerResponse.from_json(OFFLINE_API_BODY, status=503, url=url)


def not_found_response(request: WorkerRequest) -> WorkerResponse:
    if is_image(request.path):
        return WorkerResponse(
            status=404,
            headers={"content-type": "image/svg+xml"},
            body=IMAGE_PLACEHOLDER_SVG.encode("utf-8"),
            url=request.cache_key,
        )
    return WorkerResponse(
        status=404,
        headers={"content-type": "text/plain; charset=utf-8"},
        body=b"Not found (offline)",
        url=request.cache_key,
    )


class StrategyExecutor:
    """Runs the caching strategy that matches a route category."""

    def __init__(
        self,
        storage: Optional[CacheStorage],
        network: Any,
        cache_names: CacheNames,
        *,
        offline_page_path: str = "/offline",
        cache_only_paths: Iterable[str] = (),
        tasks: Optional[DetachedTaskGroup] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.storage = storage
        self.network = network
        self.cache_names = cache_names
        self.offline_page_path = offline_page_path
        self.cache_only_paths = frozenset(cache_only_paths)
        self.tasks = tasks or DetachedTaskGroup("revalidate")
        self.metrics = metrics
        self.logger = get_logger("offline.strategies")

    def strategy_for(self, request: WorkerRequest, category: RouteCategory) -> Strategy:
        if request.path in self.cache_only_paths:
            return Strategy.CACHE_ONLY
        try:
            return CATEGORY_STRATEGIES[category]
        except KeyError:
            raise ValueError(f"Route category {category.value!r} is not handled by a caching strategy")

    async def execute(self, request: WorkerRequest, category: RouteCategory) -> WorkerResponse:
        strategy = self.strategy_for(request, category)
        start = time.perf_counter()
        try:
            if strategy is Strategy.CACHE_FIRST:
                return await self.cache_first(request)
            if strategy is Strategy.STALE_WHILE_REVALIDATE:
                return await self.stale_while_revalidate(request)
            if strategy is Strategy.CACHE_ONLY:
                return await self.cache_only(request)
            return await self.network_first(request, category)
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "strategy_duration_seconds",
                    time.perf_counter() - start,
                    strategy=strategy.value,
                )

    async def cache_first(self, request: WorkerRequest) -> WorkerResponse:
        """Serve from cache; go to the network only on a miss."""
        cached = await self._match(request.cache_key)
        if cached is not None:
            self._record_lookup(Strategy.CACHE_FIRST, "hit")
            return cached

        self._record_lookup(Strategy.CACHE_FIRST, "miss")
        try:
            response = await self.network.fetch(request)
        except NetworkError:
            self._record_network_failure(RouteCategory.STATIC)
            return not_found_response(request)

        if response.ok:
            await self._put(self.cache_names.static, request.cache_key, response)
        return response

    async def network_first(self, request: WorkerRequest, category: RouteCategory) -> WorkerResponse:
        """Prefer the network; fall back to cache, then to an offline response."""
        try:
            response = await self.network.fetch(request)
        except NetworkError:
            self._record_network_failure(category)
            cached = await self._match(request.cache_key)
            if cached is not None:
                self._record_lookup(Strategy.NETWORK_FIRST, "fallback_hit")
                return cached

            self._record_lookup(Strategy.NETWORK_FIRST, "fallback_miss")
            if category is RouteCategory.API:
                return offline_api_response(request.cache_key)
            return await self.offline_page()

        if response.ok:
            await self._put(self.cache_names.dynamic, request.cache_key, response)
        return response

    async def stale_while_revalidate(self, request: WorkerRequest) -> WorkerResponse:
        """Serve the cached copy now and refresh it in the background."""
        cached = await self._match(request.cache_key)
        if cached is not None:
            self._record_lookup(Strategy.STALE_WHILE_REVALIDATE, "hit")
            self.tasks.spawn(self._revalidate(request), label=f"revalidate {request.cache_key}")
            return cached

        self._record_lookup(Strategy.STALE_WHILE_REVALIDATE, "miss")
        try:
            response = await self.network.fetch(request)
        except NetworkError:
            self._record_network_failure(RouteCategory.POST)
            return await self.offline_page()

        if response.ok:
            await self._put(self.cache_names.dynamic, request.cache_key, response)
        return response

    async def cache_only(self, request: WorkerRequest) -> WorkerResponse:
        """Never touches the network."""
        cached = await self._match(request.cache_key)
        if cached is not None:
            self._record_lookup(Strategy.CACHE_ONLY, "hit")
            return cached

        self._record_lookup(Strategy.CACHE_ONLY, "miss")
        if request.path == self.offline_page_path:
            return self._builtin_offline_page()
        return WorkerResponse(
            status=504,
            headers={"content-type": "text/plain; charset=utf-8"},
            body=b"Not cached",
            url=request.cache_key,
        )

    async def offline_page(self) -> WorkerResponse:
        """The cached offline page, or the built-in one when it was never cached."""
        cached = await self._match(self.offline_page_path)
        if cached is not None:
            return cached
        return self._builtin_offline_page()

    def _builtin_offline_page(self) -> WorkerResponse:
        return WorkerResponse(
            status=503,
            headers={"content-type": "text/html; charset=utf-8"},
            body=OFFLINE_PAGE_HTML.encode("utf-8"),
            url=self.offline_page_path,
        )

    async def _revalidate(self, request: WorkerRequest) -> None:
        try:
            response = await self.network.fetch(request)
        except NetworkError as exc:
            self.logger.debug("Background revalidation skipped", url=request.cache_key, error=exc.message)
            return

        if response.ok:
            await self._put(self.cache_names.dynamic, request.cache_key, response)
            self.logger.debug("Revalidated cache entry", url=request.cache_key)

    async def _match(self, key: str) -> Optional[WorkerResponse]:
        if self.storage is None:
            return None
        try:
            return await self.storage.match(key)
        except Exception as exc:
            self.logger.error("Cache lookup failed", key=key, error=str(exc))
            return None

    async def _put(self, cache_name: str, key: str, response: WorkerResponse) -> bool:
        """Write a clone of ``response`` so the original body stays unread."""
        if self.storage is None:
            return False
        set_cache_context(cache_name)
        try:
            store = await self.storage.open(cache_name)
            return await store.put(key, response.clone())
        except Exception as exc:
            self.logger.error("Cache write failed", cache_name=cache_name, key=key, error=str(exc))
            return False

    def _record_lookup(self, strategy: Strategy, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("cache_lookups_total", strategy=strategy.value, result=result)

    def _record_network_failure(self, category: RouteCategory) -> None:
        if self.metrics:
            self.metrics.increment_counter("network_failures_total", category=category.value)
