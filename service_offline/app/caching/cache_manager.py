"""
Cache manager for the settings panel.

Inspects named stores, clears them and pre-warms the dynamic store. None of
these operations affect strategy correctness; they only pre-warm or evict.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from shared.logging import get_logger
from .cache_names import CacheNames
from .cache_store import CacheStorage
from ..models import WorkerRequest

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass
class CacheInfo:
    name: str
    entry_count: int
    total_bytes: int
    last_updated: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entry_count": self.entry_count,
            "total_bytes": self.total_bytes,
            "last_updated": self.last_updated,
        }


@dataclass
class PreloadSummary:
    planned: int = 0
    cached: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "planned": self.planned,
            "cached": self.cached,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class CacheManager:
    """User-triggered cache inspection, eviction and pre-warming."""

    def __init__(
        self,
        storage: Optional[CacheStorage],
        network: Any,
        cache_names: CacheNames,
        *,
        preload_urls: Optional[Sequence[str]] = None,
        preload_concurrency: int = 5,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.storage = storage
        self.network = network
        self.cache_names = cache_names
        self.preload_urls = list(preload_urls or [])
        self.metrics = metrics
        self.logger = get_logger("offline.cache_manager")
        self._preload_semaphore = asyncio.Semaphore(max(1, preload_concurrency))

    @property
    def available(self) -> bool:
        return self.storage is not None

    @property
    def online(self) -> bool:
        return bool(getattr(self.network, "online", True))

    async def list_caches(self) -> List[CacheInfo]:
        """Stats for every named store. Reads every entry body."""
        if self.storage is None:
            return []

        infos = []
        try:
            for name in await self.storage.keys():
                store = await self.storage.open(name)
                entries = await store.entries()
                infos.append(CacheInfo(
                    name=name,
                    entry_count=len(entries),
                    total_bytes=sum(entry.size for entry in entries),
                    last_updated=max((entry.stored_at for entry in entries), default=None),
                ))
        except Exception as exc:
            self.logger.error("Cache listing error", error=str(exc))
            return []
        return infos

    async def clear_cache(self, name: str) -> bool:
        if self.storage is None:
            return False
        try:
            deleted = await self.storage.delete(name)
        except Exception as exc:
            self.logger.error("Cache clear error", cache_name=name, error=str(exc))
            return False

        if deleted:
            self.logger.info("Cleared cache", cache_name=name)
        return deleted

    async def clear_all(self) -> int:
        """Delete every store; returns how many were deleted."""
        if self.storage is None:
            return 0

        cleared = 0
        try:
            for name in await self.storage.keys():
                if await self.storage.delete(name):
                    cleared += 1
        except Exception as exc:
            self.logger.error("Cache clear-all error", error=str(exc))

        self.logger.info("Cleared all caches", cleared=cleared)
        return cleared

    async def preload(self, urls: Optional[Sequence[str]] = None) -> PreloadSummary:
        """Fetch ``urls`` and store OK responses in the dynamic store.

        Individual failures are logged and recorded; the batch always runs to
        completion.
        """
        targets = list(urls) if urls is not None else list(self.preload_urls)
        summary = PreloadSummary(planned=len(targets))

        if self.storage is None:
            summary.skipped = "cache_unavailable"
            self.logger.warning("Preload requested but cache storage is unavailable")
            return summary

        if not self.online:
            summary.skipped = "offline"
            self.logger.info("Preload skipped while offline", planned=len(targets))
            return summary

        if not targets:
            return summary

        results = await asyncio.gather(
            *(self._preload_one(url) for url in targets),
            return_exceptions=True,
        )
        for url, outcome in zip(targets, results):
            if isinstance(outcome, Exception):
                summary.failed[url] = str(outcome)
                self.logger.warning("Failed to preload", url=url, error=str(outcome))
                self._record_preload("error")
            elif outcome is None:
                summary.cached.append(url)
                self._record_preload("cached")
            else:
                summary.failed[url] = outcome
                self._record_preload("rejected")

        self.logger.info(
            "Preload completed",
            planned=summary.planned,
            cached=len(summary.cached),
            failed=len(summary.failed),
        )
        return summary

    async def _preload_one(self, url: str) -> Optional[str]:
        """Returns None when cached, or a reason string when the origin refused."""
        async with self._preload_semaphore:
            request = WorkerRequest("GET", url)
            response = await self.network.fetch(request)
            if not response.ok:
                return f"status {response.status}"

            store = await self.storage.open(self.cache_names.dynamic)
            if not await store.put(request.cache_key, response):
                return "cache write failed"
            return None

    async def status(self) -> Dict[str, Any]:
        caches = await self.list_caches()
        return {
            "online": self.online,
            "cache_available": self.available,
            "cache_version": self.cache_names.version,
            "caches": len(caches),
            "total_entries": sum(info.entry_count for info in caches),
            "total_bytes": sum(info.total_bytes for info in caches),
            "checked_at": time.time(),
        }

    def _record_preload(self, result: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("cache_preload_total", result=result)
