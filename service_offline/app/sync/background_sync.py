"""
Background sync for offline mutations.

Mutating requests that fail for lack of connectivity are queued; when a sync
event fires the queue is replayed and the blog is checked for new posts.
"""

import base64
import json
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import redis.asyncio as redis

from shared.logging import get_logger
from shared.errors import NetworkError
from ..adapters.notifications import DEFAULT_BADGE, DEFAULT_ICON, NotificationCenter
from ..caching.cache_names import CacheNames
from ..caching.cache_store import CacheStorage
from ..models import WorkerRequest

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


@dataclass
class SyncQueueItem:
    """A mutation waiting to be replayed."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    queued_at: float = field(default_factory=time.time)
    attempts: int = 0

    @classmethod
    def from_request(cls, request: WorkerRequest) -> "SyncQueueItem":
        return cls(
            method=request.method,
            url=request.url,
            headers=dict(request.headers),
            body=request.body,
        )

    def to_request(self) -> WorkerRequest:
        return WorkerRequest(self.method, self.url, dict(self.headers), self.body)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "method": self.method,
            "url": self.url,
            "headers": self.headers,
            "body": base64.b64encode(self.body).decode("ascii"),
            "queued_at": self.queued_at,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncQueueItem":
        return cls(
            id=data["id"],
            method=data["method"],
            url=data["url"],
            headers=data.get("headers", {}),
            body=base64.b64decode(data.get("body", "")),
            queued_at=float(data.get("queued_at", 0.0)),
            attempts=int(data.get("attempts", 0)),
        )


@dataclass
class SyncReport:
    replayed: int = 0
    failed: int = 0
    remaining: int = 0
    new_posts: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "replayed": self.replayed,
            "failed": self.failed,
            "remaining": self.remaining,
            "new_posts": self.new_posts,
            "error": self.error,
            "skipped": self.skipped,
        }


class SyncQueueStore(ABC):
    """FIFO persistence for queued mutations."""

    @abstractmethod
    async def append(self, item: SyncQueueItem) -> None: ...

    @abstractmethod
    async def items(self) -> List[SyncQueueItem]: ...

    @abstractmethod
    async def update(self, item: SyncQueueItem) -> None: ...

    @abstractmethod
    async def remove(self, item_id: str) -> bool: ...

    async def size(self) -> int:
        return len(await self.items())


class InMemorySyncQueueStore(SyncQueueStore):
    def __init__(self):
        self._items: Dict[str, SyncQueueItem] = {}

    async def append(self, item: SyncQueueItem) -> None:
        self._items[item.id] = item

    async def items(self) -> List[SyncQueueItem]:
        return list(self._items.values())

    async def update(self, item: SyncQueueItem) -> None:
        if item.id in self._items:
            self._items[item.id] = item

    async def remove(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None


class RedisSyncQueueStore(SyncQueueStore):
    """Queue kept in Redis: a list of ids for order plus a hash of items."""

    def __init__(self, redis_url: str, namespace: str = "offline"):
        self.redis_url = redis_url
        self.order_key = f"{namespace}:sync:order"
        self.items_key = f"{namespace}:sync:items"
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def append(self, item: SyncQueueItem) -> None:
        redis_client = await self._get_redis()
        await redis_client.hset(self.items_key, item.id, json.dumps(item.to_dict()))
        await redis_client.rpush(self.order_key, item.id)

    async def items(self) -> List[SyncQueueItem]:
        redis_client = await self._get_redis()
        ids = await redis_client.lrange(self.order_key, 0, -1)
        items = []
        for item_id in ids:
            raw = await redis_client.hget(self.items_key, item_id)
            if raw is None:
                continue
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            items.append(SyncQueueItem.from_dict(json.loads(raw)))
        return items

    async def update(self, item: SyncQueueItem) -> None:
        redis_client = await self._get_redis()
        if await redis_client.hexists(self.items_key, item.id):
            await redis_client.hset(self.items_key, item.id, json.dumps(item.to_dict()))

    async def remove(self, item_id: str) -> bool:
        redis_client = await self._get_redis()
        await redis_client.lrem(self.order_key, 0, item_id)
        return bool(await redis_client.hdel(self.items_key, item_id))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def _post_ids(payload: Any) -> List[Any]:
    posts = payload.get("posts", []) if isinstance(payload, dict) else payload
    if not isinstance(posts, list):
        return []
    return [post.get("id") for post in posts if isinstance(post, dict) and post.get("id") is not None]


class BackgroundSyncQueue:
    """Idle/Syncing state machine driven by sync events."""

    def __init__(
        self,
        store: SyncQueueStore,
        network: Any,
        storage: Optional[CacheStorage],
        cache_names: CacheNames,
        notifier: NotificationCenter,
        *,
        new_content_path: str = "/api/public/posts",
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.network = network
        self.storage = storage
        self.cache_names = cache_names
        self.notifier = notifier
        self.new_content_path = new_content_path
        self.metrics = metrics
        self.state = SyncState.IDLE
        self.last_report: Optional[SyncReport] = None
        self.logger = get_logger("offline.sync")

    async def enqueue(self, request: WorkerRequest) -> SyncQueueItem:
        item = SyncQueueItem.from_request(request)
        await self.store.append(item)
        self.logger.info("Queued offline mutation", item_id=item.id, method=item.method, url=item.url)
        return item

    async def pending(self) -> List[SyncQueueItem]:
        return await self.store.items()

    async def run(self) -> SyncReport:
        """Drain queued mutations, then check for new content.

        Failures are logged and recorded on the report, never raised; the
        next attempt is left to whoever fires the next sync event.
        """
        if self.state is SyncState.SYNCING:
            self.logger.info("Sync already in progress; skipping")
            return SyncReport(skipped=True)

        self.state = SyncState.SYNCING
        report = SyncReport()
        try:
            await self._drain(report)
            report.new_posts = await self._check_for_new_content()
            self._record("ok")
        except Exception as exc:
            report.error = str(exc)
            self.logger.error("Background sync failed", error=str(exc))
            self._record("error")
        finally:
            try:
                report.remaining = await self.store.size()
            except Exception as exc:
                self.logger.error("Could not read sync queue size", error=str(exc))
            self.state = SyncState.IDLE
            self.last_report = report

        self.logger.info(
            "Background sync completed",
            replayed=report.replayed,
            failed=report.failed,
            remaining=report.remaining,
            new_posts=len(report.new_posts),
        )
        return report

    async def _drain(self, report: SyncReport) -> None:
        for item in await self.store.items():
            try:
                response = await self.network.fetch(item.to_request())
            except NetworkError:
                item.attempts += 1
                await self.store.update(item)
                report.failed += 1
                # Still offline; the rest of the queue would fail the same way
                raise

            if response.status < 500:
                await self.store.remove(item.id)
                report.replayed += 1
                self.logger.info("Replayed offline mutation", item_id=item.id, status_code=response.status)
            else:
                item.attempts += 1
                await self.store.update(item)
                report.failed += 1
                self.logger.warning("Replay rejected by origin", item_id=item.id, status_code=response.status)

    async def _check_for_new_content(self) -> List[Any]:
        """Compare the origin's post list with the cached copy and notify on new ids."""
        response = await self.network.fetch(WorkerRequest("GET", self.new_content_path))
        if not response.ok:
            self.logger.warning("New content check failed", status_code=response.status)
            return []

        fresh = response.clone()
        current_ids = _post_ids(response.json())

        seen_ids: Optional[set] = None
        if self.storage is not None:
            cached = await self.storage.match(self.new_content_path)
            if cached is not None:
                try:
                    seen_ids = set(_post_ids(cached.json()))
                except ValueError:
                    seen_ids = None
            store = await self.storage.open(self.cache_names.dynamic)
            await store.put(self.new_content_path, fresh)

        # Without a cached baseline every post would look new
        if seen_ids is None:
            return []

        new_ids = [post_id for post_id in current_ids if post_id not in seen_ids]
        if new_ids:
            count = len(new_ids)
            await self.notifier.show_notification("New blog posts", {
                "body": f"{count} new post{'s' if count != 1 else ''} available",
                "icon": DEFAULT_ICON,
                "badge": DEFAULT_BADGE,
                "data": {"post_ids": new_ids, "url": "/"},
            })
        return new_ids

    def _record(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("background_sync_total", result=result)
