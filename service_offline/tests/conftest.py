"""
Shared fixtures for offline cache tests.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from shared.config import get_config
from shared.errors import NetworkError
from service_offline.app.caching.cache_names import CacheNames
from service_offline.app.caching.cache_store import InMemoryCacheStorage
from service_offline.app.models import WorkerRequest, WorkerResponse


class FakeNetwork:
    """Scriptable stand-in for the blog origin."""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, Dict[str, str], bytes]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.offline = False
        self.failing: set = set()
        self.online = True

    def add(self, url: str, body: Any, status: int = 200, content_type: Optional[str] = None):
        if isinstance(body, (dict, list)):
            payload = json.dumps(body).encode("utf-8")
            content_type = content_type or "application/json"
        elif isinstance(body, str):
            payload = body.encode("utf-8")
            content_type = content_type or "text/html; charset=utf-8"
        else:
            payload = body
            content_type = content_type or "application/octet-stream"
        self.routes[url] = (status, {"content-type": content_type}, payload)

    def calls_for(self, url: str) -> int:
        return sum(1 for _, called in self.calls if called == url)

    async def fetch(self, request: WorkerRequest) -> WorkerResponse:
        self.calls.append((request.method, request.cache_key))
        if self.offline or request.cache_key in self.failing:
            self.online = False
            raise NetworkError(request.cache_key, "connection refused")

        self.online = True
        route = self.routes.get(request.cache_key)
        if route is None:
            return WorkerResponse(404, {"content-type": "text/plain"}, b"not found", request.cache_key)
        status, headers, body = route
        return WorkerResponse(status, dict(headers), body, request.cache_key)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def storage():
    return InMemoryCacheStorage()


@pytest.fixture
def cache_names():
    return CacheNames("blog", "v2")


@pytest.fixture
def config():
    return get_config("offline", 8080, cache_backend="memory", cache_version="v2")


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))


@pytest.fixture
def metrics():
    return DummyMetrics()
