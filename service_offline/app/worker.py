"""
The offline cache worker.

``CacheWorker`` receives the lifecycle events a browser delivers to a service
worker (install, activate, fetch, sync, push, notificationclick, message) as
plain method calls. The HTTP adapter in ``main`` is the only caller.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.config import BaseConfig
from shared.logging import get_logger
from shared.errors import NetworkError, ValidationError
from .adapters.notifications import DEFAULT_BADGE, DEFAULT_ICON, Notification, NotificationCenter
from .caching.cache_names import CacheNames
from .caching.cache_store import CacheStorage
from .models import WorkerRequest, WorkerResponse
from .routing.classifier import RouteCategory, classify, is_bypassed, is_cacheable_method, is_mutating_method
from .strategies.executor import StrategyExecutor
from .sync.background_sync import BackgroundSyncQueue, InMemorySyncQueueStore, SyncQueueStore, SyncReport
from .tasks import DetachedTaskGroup

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"


MESSAGE_SKIP_WAITING = "SKIP_WAITING"
MESSAGE_CACHE_DYNAMIC_IMPORT = "CACHE_DYNAMIC_IMPORT"
MESSAGE_CLEAR_CACHE = "CLEAR_CACHE"
MESSAGE_CACHE_CLEARED = "CACHE_CLEARED"
MESSAGE_ALL_CACHES_CLEARED = "ALL_CACHES_CLEARED"

PUSH_DEFAULT_BODY = "New blog post available!"


class CacheWorker:
    """Offline cache worker for the blog."""

    def __init__(
        self,
        config: BaseConfig,
        storage: Optional[CacheStorage],
        network: Any,
        *,
        notifier: Optional[NotificationCenter] = None,
        sync_store: Optional[SyncQueueStore] = None,
        tasks: Optional[DetachedTaskGroup] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.storage = storage
        self.network = network
        self.cache_names = CacheNames(config.cache_prefix, config.cache_version)
        self.notifier = notifier or NotificationCenter()
        self.tasks = tasks or DetachedTaskGroup("worker")
        self.metrics = metrics
        self.state = WorkerState.PARSED
        self.logger = get_logger("offline.worker")

        self.executor = StrategyExecutor(
            storage,
            network,
            self.cache_names,
            offline_page_path=config.offline_page_path,
            cache_only_paths=config.cache_only_paths,
            tasks=self.tasks,
            metrics=metrics,
        )
        self.sync_queue = BackgroundSyncQueue(
            sync_store or InMemorySyncQueueStore(),
            network,
            storage,
            self.cache_names,
            self.notifier,
            new_content_path=config.new_content_path,
            metrics=metrics,
        )

    @property
    def activated(self) -> bool:
        return self.state is WorkerState.ACTIVATED

    async def on_install(self) -> Dict[str, Any]:
        """Precache the app shell into the static store."""
        self.state = WorkerState.INSTALLING
        cached: List[str] = []
        failed: Dict[str, str] = {}

        if self.storage is None:
            self.logger.warning("Cache storage unavailable; installing without precache")
        else:
            store = await self.storage.open(self.cache_names.static)
            for url in self.config.precache_urls:
                try:
                    request = WorkerRequest("GET", url)
                    response = await self.network.fetch(request)
                except NetworkError as exc:
                    failed[url] = exc.message
                    continue
                if not response.ok:
                    failed[url] = f"status {response.status}"
                    continue
                if await store.put(request.cache_key, response):
                    cached.append(url)
                else:
                    failed[url] = "cache write failed"

        if failed:
            self.logger.warning("Precache incomplete", failed=failed)

        self.state = WorkerState.INSTALLED
        self.logger.info("Worker installed", cache_version=self.cache_names.version, precached=len(cached))

        if self.config.skip_waiting_on_install:
            await self.on_activate()

        return {"cached": cached, "failed": failed, "state": self.state.value}

    async def on_activate(self) -> List[str]:
        """Delete every store that does not belong to the current version."""
        self.state = WorkerState.ACTIVATING
        deleted: List[str] = []

        if self.storage is not None:
            for name in await self.storage.keys():
                if self.cache_names.is_current(name):
                    continue
                if await self.storage.delete(name):
                    deleted.append(name)

        self.state = WorkerState.ACTIVATED
        self.logger.info("Worker activated", cache_version=self.cache_names.version, deleted_caches=deleted)
        return deleted

    async def on_fetch(self, request: WorkerRequest) -> WorkerResponse:
        """Answer an intercepted request."""
        if not self.activated:
            return await self.network.fetch(request)

        if not is_cacheable_method(request.method):
            return await self._forward_mutation(request)

        category = classify(request.path)
        if category is RouteCategory.NO_CACHE:
            return await self.network.fetch(request)

        return await self.executor.execute(request, category)

    async def _forward_mutation(self, request: WorkerRequest) -> WorkerResponse:
        try:
            return await self.network.fetch(request)
        except NetworkError:
            if (
                not is_mutating_method(request.method)
                or is_bypassed(request.path)
                or not self.config.queue_offline_mutations
            ):
                raise

        item = await self.sync_queue.enqueue(request)
        return WorkerResponse.from_json(
            {"queued": True, "id": item.id, "tag": self.config.sync_tag},
            status=202,
            url=request.cache_key,
        )

    async def on_sync(self, tag: str) -> Optional[SyncReport]:
        if tag != self.config.sync_tag:
            self.logger.debug("Ignoring sync event", tag=tag)
            return None
        return await self.sync_queue.run()

    async def on_push(self, data: Optional[str] = None) -> Notification:
        return await self.notifier.show_notification("Blog Update", {
            "body": data or PUSH_DEFAULT_BODY,
            "icon": DEFAULT_ICON,
            "badge": DEFAULT_BADGE,
            "vibrate": [100, 50, 100],
            "data": {"primary_key": 1},
            "actions": [
                {"action": "explore", "title": "View Post", "icon": DEFAULT_BADGE},
                {"action": "close", "title": "Close", "icon": DEFAULT_BADGE},
            ],
        })

    async def on_notification_click(self, action: Optional[str] = None) -> Optional[str]:
        """Returns the URL the page should open, if any."""
        if action == "explore":
            return "/"
        return None

    async def on_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        message_type = message.get("type") if isinstance(message, dict) else None

        if message_type == MESSAGE_SKIP_WAITING:
            if self.state is WorkerState.INSTALLED:
                await self.on_activate()
            return {"type": message_type, "state": self.state.value}

        if message_type == MESSAGE_CACHE_DYNAMIC_IMPORT:
            url = message.get("url")
            if not url or not isinstance(url, str):
                raise ValidationError("CACHE_DYNAMIC_IMPORT requires a url", {"message": message})
            return {"type": message_type, "url": url, "cached": await self._cache_dynamic(url)}

        if message_type == MESSAGE_CLEAR_CACHE:
            cleared = 0
            if self.storage is not None:
                for name in await self.storage.keys():
                    if await self.storage.delete(name):
                        cleared += 1
            self.logger.info("Cleared caches on request", cleared=cleared)
            return {"type": message_type, "cleared": cleared}

        if message_type in (MESSAGE_CACHE_CLEARED, MESSAGE_ALL_CACHES_CLEARED):
            self.logger.info("Page cleared caches", message_type=message_type, cache_name=message.get("cacheName"))
            return {"type": message_type, "acknowledged": True}

        raise ValidationError("Unknown worker message type", {"type": message_type})

    async def _cache_dynamic(self, url: str) -> bool:
        if self.storage is None:
            return False
        try:
            request = WorkerRequest("GET", url)
            response = await self.network.fetch(request)
        except NetworkError as exc:
            self.logger.warning("Dynamic import not cached", url=url, error=exc.message)
            return False
        if not response.ok:
            return False
        store = await self.storage.open(self.cache_names.dynamic)
        return await store.put(request.cache_key, response)
