"""
Unit tests for the offline cache service HTTP surface.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from service_offline.app.caching.cache_store import InMemoryCacheStorage
from service_offline.app.main import OfflineCacheService, create_app
from service_offline.app.models import WorkerResponse


def _seed_origin(network):
    network.add("/", "<h1>Home</h1>")
    network.add("/offline", "<h1>Offline</h1>")
    network.add("/manifest.json", {"name": "Blog"})
    network.add("/icons/icon-192x192.png", b"png192", content_type="image/png")
    network.add("/icons/icon-512x512.png", b"png512", content_type="image/png")
    network.add("/api/public/posts", [{"id": 1}])
    network.add("/api/categories", [{"id": "python"}])


class TestOfflineCacheService:
    """Test cases for OfflineCacheService."""

    @pytest.fixture
    def service(self, network, storage):
        """Create service wired to the fake origin."""
        _seed_origin(network)
        return OfflineCacheService(get_config("offline", 8080), storage=storage, network=network)

    @pytest.fixture
    def client(self, service):
        """Create test client; entering it runs the install event."""
        with TestClient(service.app) as test_client:
            yield test_client

    def test_startup_installs_and_activates(self, client, service):
        """Test install event on startup."""
        assert service.worker.activated

        response = client.get("/_worker/caches")
        assert response.status_code == 200
        data = response.json()
        assert data["cache_available"] is True
        assert data["caches"][0]["name"] == "blog-static-v2"
        assert data["caches"][0]["entry_count"] == 5

    def test_health_endpoint(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "offline"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "ok", "network": "online", "worker": "activated"}
        assert data["cache_version"] == "v2"
        assert "X-Request-ID" in response.headers

    def test_health_degraded_while_offline(self, client, network):
        network.offline = True
        client.get("/api/tags")

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["network"] == "offline"

    def test_metrics_endpoint(self, client, service):
        """Test metrics endpoint."""
        client.get("/api/public/posts")

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "cache_lookups_total" in response.text
        assert "strategy_duration_seconds" in response.text

        histogram = service.metrics.get_metric("strategy_duration_seconds")
        assert histogram is not None

    def test_proxy_serves_from_network_and_caches(self, client, network):
        """Test API route through the worker."""
        response = client.get("/api/public/posts")
        assert response.status_code == 200
        assert response.json() == [{"id": 1}]

        network.offline = True
        offline = client.get("/api/public/posts")
        assert offline.status_code == 200
        assert offline.json() == [{"id": 1}]

    def test_proxy_offline_api_without_cache(self, client, network):
        """Test offline JSON for uncached API routes."""
        network.offline = True

        response = client.get("/api/tags")

        assert response.status_code == 503
        assert response.json() == {"error": "Offline - Please check your connection", "cached": True}

    def test_proxy_offline_dashboard_serves_offline_page(self, client, network):
        """Test offline fallback page for navigations."""
        network.offline = True

        response = client.get("/dashboard")

        assert response.status_code == 200
        assert response.text == "<h1>Offline</h1>"

    def test_proxy_static_served_from_precache(self, client, network):
        calls = len(network.calls)

        response = client.get("/icons/icon-192x192.png")

        assert response.status_code == 200
        assert response.content == b"png192"
        assert len(network.calls) == calls

    def test_proxy_keeps_query_string(self, client, network):
        network.add("/api/public/posts?page=2", [{"id": 7}])

        response = client.get("/api/public/posts?page=2")

        assert response.json() == [{"id": 7}]
        assert ("GET", "/api/public/posts?page=2") in network.calls

    def test_offline_auth_route_returns_network_error(self, client, network):
        """Test that uncached routes surface network failures."""
        network.offline = True

        response = client.get("/api/auth/session")

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "NETWORK_ERROR"
        assert data["request_id"]

    def test_proxy_forwards_every_set_cookie(self, client, network):
        network.fetch = AsyncMock(return_value=WorkerResponse(
            200,
            {"content-type": "application/json"},
            b"{}",
            url="/api/auth/signin",
            set_cookies=["session=abc; Path=/; HttpOnly", "csrf=xyz; Path=/"],
        ))

        response = client.post("/api/auth/signin", json={"email": "a@b.c"})

        assert response.status_code == 200
        assert response.headers.get_list("set-cookie") == [
            "session=abc; Path=/; HttpOnly",
            "csrf=xyz; Path=/",
        ]

    def test_unhandled_error_keeps_request_id(self, service, network):
        with TestClient(service.app, raise_server_exceptions=False) as test_client:
            network.fetch = AsyncMock(side_effect=RuntimeError("boom"))

            response = test_client.get("/api/auth/session", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "INTERNAL_ERROR"
        assert data["request_id"] == "req-123"

    def test_offline_mutation_queued_then_synced(self, client, network):
        """Test queue and replay of an offline POST."""
        network.offline = True
        queued = client.post("/api/posts", json={"title": "Draft"})
        assert queued.status_code == 202
        assert queued.json()["queued"] is True

        pending = client.get("/_worker/sync/queue").json()
        assert len(pending["items"]) == 1
        assert pending["items"][0]["method"] == "POST"

        network.offline = False
        network.add("/api/posts", {"id": 11}, status=201)
        synced = client.post("/_worker/sync", json={"tag": "background-sync"})
        assert synced.status_code == 200
        data = synced.json()
        assert data["handled"] is True
        assert data["replayed"] == 1
        assert data["remaining"] == 0

    def test_sync_other_tag(self, client):
        response = client.post("/_worker/sync", json={"tag": "periodic"})
        assert response.json() == {"tag": "periodic", "handled": False}

    def test_clear_all_caches_is_idempotent(self, client):
        """Test clearing every cache twice."""
        first = client.delete("/_worker/caches")
        assert first.json()["cleared"] == 1

        second = client.delete("/_worker/caches")
        assert second.json()["cleared"] == 0
        assert client.get("/_worker/caches").json()["caches"] == []

    def test_clear_single_cache(self, client):
        response = client.delete("/_worker/caches/blog-static-v2")
        assert response.json() == {"name": "blog-static-v2", "cleared": True}

        missing = client.delete("/_worker/caches/blog-static-v2")
        assert missing.json()["cleared"] is False

    def test_preload(self, client):
        """Test preloading explicit routes."""
        response = client.post("/_worker/caches/preload", json={"urls": ["/api/public/posts", "/api/categories"]})

        assert response.status_code == 200
        data = response.json()
        assert sorted(data["cached"]) == ["/api/categories", "/api/public/posts"]

        caches = {c["name"]: c for c in client.get("/_worker/caches").json()["caches"]}
        assert caches["blog-dynamic-v2"]["entry_count"] == 2

    def test_status(self, client):
        data = client.get("/_worker/status").json()

        assert data["online"] is True
        assert data["cache_version"] == "v2"
        assert data["total_entries"] == 5

    def test_message_skip_waiting(self, client):
        response = client.post("/_worker/message", json={"type": "SKIP_WAITING"})
        assert response.status_code == 200
        assert response.json()["state"] == "activated"

    def test_message_unknown_type_rejected(self, client):
        response = client.post("/_worker/message", json={"type": "NOPE"})
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_message_without_type_rejected(self, client):
        response = client.post("/_worker/message", json={"url": "/x"})
        assert response.status_code == 400

    def test_push_and_notifications(self, client):
        """Test push event and notification outbox."""
        pushed = client.post("/_worker/push", json={"data": "Hello"})
        assert pushed.status_code == 200
        assert pushed.json()["title"] == "Blog Update"

        notifications = client.get("/_worker/notifications").json()["notifications"]
        assert [n["options"]["body"] for n in notifications] == ["Hello"]
        assert client.get("/_worker/notifications").json()["notifications"] == []

    def test_notification_click(self, client):
        response = client.post("/_worker/notificationclick", json={"action": "explore"})
        assert response.json() == {"open_window": "/"}

    def test_activate_endpoint(self, client, storage):
        response = client.post("/_worker/activate")
        assert response.status_code == 200
        assert response.json() == {"state": "activated", "deleted_caches": []}


class TestCreateApp:
    """Test cases for create_app()."""

    def test_create_app_with_unavailable_cache(self, network):
        network.add("/api/tags", [])
        app = create_app(get_config("offline", 8080, cache_backend="disabled"), network=network)

        with TestClient(app) as client:
            caches = client.get("/_worker/caches").json()
            assert caches == {"cache_available": False, "caches": []}

            health = client.get("/health").json()
            assert health["status"] == "degraded"
            assert health["dependencies"]["cache"] == "unavailable"

            response = client.get("/api/tags")
            assert response.status_code == 200

            preload = client.post("/_worker/caches/preload").json()
            assert preload["skipped"] == "cache_unavailable"

    def test_create_app_defaults_to_memory_storage(self, network):
        app = create_app(get_config("offline", 8080), network=network)

        assert isinstance(app.state.offline_service.storage, InMemoryCacheStorage)
