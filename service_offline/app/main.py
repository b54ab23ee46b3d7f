"""
Offline cache service for the blog.

Every request that is not an admin route is handed to ``CacheWorker.on_fetch``
exactly as a browser would hand it to the PWA worker. Worker events and the
cache manager are exposed under ``/_worker``.
"""

from typing import Any, Dict, List, Optional

from fastapi import Body, Request, Response
from pydantic import BaseModel

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ValidationError
from .adapters.network_client import NetworkClient
from .adapters.notifications import NotificationCenter
from .caching import build_cache_storage
from .caching.cache_manager import CacheManager
from .caching.cache_store import CacheStorage
from .models import WorkerRequest, WorkerResponse
from .sync.background_sync import InMemorySyncQueueStore, RedisSyncQueueStore, SyncQueueStore
from .tasks import DetachedTaskGroup
from .worker import CacheWorker


PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_SKIP_PROXY_RESPONSE_HEADERS = frozenset({"content-length", "transfer-encoding", "connection", "content-encoding"})


class PreloadRequest(BaseModel):
    urls: Optional[List[str]] = None


class SyncEvent(BaseModel):
    tag: str = "background-sync"


class PushEvent(BaseModel):
    data: Optional[str] = None


class NotificationClick(BaseModel):
    action: Optional[str] = None


class OfflineCacheService(BaseService):
    """Offline cache service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        storage: Optional[CacheStorage] = None,
        network: Any = None,
        sync_store: Optional[SyncQueueStore] = None,
    ):
        super().__init__("offline", 8080, config)

        self.storage = storage if storage is not None else build_cache_storage(self.config)
        self.network = network if network is not None else NetworkClient(
            self.config.origin_url,
            timeout=self.config.network_timeout_seconds,
        )
        if sync_store is None:
            sync_store = (
                RedisSyncQueueStore(self.config.redis_url, namespace=f"{self.config.cache_prefix}-offline")
                if self.config.cache_backend.lower() == "redis"
                else InMemorySyncQueueStore()
            )
        self.sync_store = sync_store

        self.notifier = NotificationCenter()
        self.tasks = DetachedTaskGroup("revalidate")
        self.worker = CacheWorker(
            self.config,
            self.storage,
            self.network,
            notifier=self.notifier,
            sync_store=self.sync_store,
            tasks=self.tasks,
            metrics=self.metrics,
        )
        self.cache_manager = CacheManager(
            self.storage,
            self.network,
            self.worker.cache_names,
            preload_urls=self.config.preload_urls,
            preload_concurrency=self.config.preload_concurrency,
            metrics=self.metrics,
        )

        self._setup_worker_routes()
        self._setup_cache_routes()
        self._setup_proxy_route()

        self.app.state.offline_service = self

    async def on_startup(self) -> None:
        await self.worker.on_install()

    async def on_shutdown(self) -> None:
        await self.tasks.wait_idle()
        for resource in (self.network, self.storage, self.sync_store):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "cache": "ok" if self.cache_manager.available else "unavailable",
            "network": "online" if self.cache_manager.online else "offline",
            "worker": self.worker.state.value,
        }

    def _setup_worker_routes(self):
        """Routes that deliver platform events to the worker."""

        @self.app.post("/_worker/install")
        async def install():
            return await self.worker.on_install()

        @self.app.post("/_worker/activate")
        async def activate():
            deleted = await self.worker.on_activate()
            return {"state": self.worker.state.value, "deleted_caches": deleted}

        @self.app.post("/_worker/message")
        async def message(payload: Dict[str, Any] = Body(...)):
            if "type" not in payload:
                raise ValidationError("Worker message requires a type", {"message": payload})
            return await self.worker.on_message(payload)

        @self.app.post("/_worker/sync")
        async def sync(event: SyncEvent):
            report = await self.worker.on_sync(event.tag)
            if report is None:
                return {"tag": event.tag, "handled": False}
            return {"tag": event.tag, "handled": True, **report.to_dict()}

        @self.app.get("/_worker/sync/queue")
        async def sync_queue():
            items = await self.worker.sync_queue.pending()
            return {
                "state": self.worker.sync_queue.state.value,
                "items": [
                    {
                        "id": item.id,
                        "method": item.method,
                        "url": item.url,
                        "queued_at": item.queued_at,
                        "attempts": item.attempts,
                    }
                    for item in items
                ],
            }

        @self.app.post("/_worker/push")
        async def push(event: PushEvent):
            notification = await self.worker.on_push(event.data)
            return notification.to_dict()

        @self.app.post("/_worker/notificationclick")
        async def notification_click(event: NotificationClick):
            return {"open_window": await self.worker.on_notification_click(event.action)}

        @self.app.get("/_worker/notifications")
        async def notifications():
            return {"notifications": [n.to_dict() for n in self.notifier.drain()]}

    def _setup_cache_routes(self):
        """Cache manager routes used by the settings panel."""

        @self.app.get("/_worker/status")
        async def status():
            return await self.cache_manager.status()

        @self.app.get("/_worker/caches")
        async def list_caches():
            infos = await self.cache_manager.list_caches()
            return {
                "cache_available": self.cache_manager.available,
                "caches": [info.to_dict() for info in infos],
            }

        @self.app.delete("/_worker/caches")
        async def clear_all():
            return {"cleared": await self.cache_manager.clear_all()}

        @self.app.delete("/_worker/caches/{name}")
        async def clear_cache(name: str):
            return {"name": name, "cleared": await self.cache_manager.clear_cache(name)}

        @self.app.post("/_worker/caches/preload")
        async def preload(request: Optional[PreloadRequest] = None):
            urls = request.urls if request is not None else None
            summary = await self.cache_manager.preload(urls)
            return summary.to_dict()

    def _setup_proxy_route(self):
        """Catch-all route: every other request goes through the worker."""

        @self.app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def proxy(path: str, request: Request):
            url = request.url.path
            if request.url.query:
                url = f"{url}?{request.url.query}"

            worker_request = WorkerRequest(
                method=request.method,
                url=url,
                headers=dict(request.headers),
                body=await request.body(),
            )
            worker_response = await self.worker.on_fetch(worker_request)
            return self._to_http_response(worker_response)

    @staticmethod
    def _to_http_response(worker_response: WorkerResponse) -> Response:
        headers = {
            k: v for k, v in worker_response.headers.items()
            if k not in _SKIP_PROXY_RESPONSE_HEADERS
        }
        response = Response(
            content=worker_response.read(),
            status_code=worker_response.status,
            headers=headers,
        )
        for cookie in worker_response.set_cookies:
            response.headers.append("set-cookie", cookie)
        return response


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = OfflineCacheService(config, **kwargs)
    return service.app


def run():
    """Run the service with configuration from the environment."""
    OfflineCacheService().run()


if __name__ == "__main__":
    run()
