"""
Named cache stores holding serialized HTTP responses.

``CacheStorage`` is the registry of named stores (the equivalent of the
browser's ``caches`` global); ``CacheStore`` is a single named store keyed by
request URL. Two backends are provided: process memory and Redis.
"""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from ..models import CacheEntry, WorkerResponse


class CacheStore(ABC):
    """A single named cache store."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> Optional[WorkerResponse]:
        """Return a fresh response for ``key`` or None."""

    @abstractmethod
    async def put(self, key: str, response: WorkerResponse) -> bool:
        """Store ``response`` under ``key``, consuming its body."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one entry."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """Request keys in this store."""

    @abstractmethod
    async def entries(self) -> List[CacheEntry]:
        """All entries in this store."""


class CacheStorage(ABC):
    """Registry of named cache stores."""

    @abstractmethod
    async def open(self, name: str) -> CacheStore:
        """Open (creating if needed) the store called ``name``."""

    @abstractmethod
    async def has(self, name: str) -> bool:
        """Whether a store called ``name`` exists."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete a store and all its entries. False when it did not exist."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """Store names in creation order."""

    async def match(self, key: str) -> Optional[WorkerResponse]:
        """Search every store in creation order; first hit wins."""
        for name in await self.keys():
            store = await self.open(name)
            response = await store.match(key)
            if response is not None:
                return response
        return None


class InMemoryCacheStore(CacheStore):
    """Cache store backed by an ordered dict."""

    def __init__(self, name: str):
        super().__init__(name)
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    async def match(self, key: str) -> Optional[WorkerResponse]:
        entry = self._entries.get(key)
        return entry.to_response() if entry else None

    async def put(self, key: str, response: WorkerResponse) -> bool:
        self._entries[key] = CacheEntry.from_response(key, response)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> List[str]:
        return list(self._entries.keys())

    async def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())


class InMemoryCacheStorage(CacheStorage):
    """Process-local cache storage. Contents are lost on restart."""

    def __init__(self):
        self._stores: Dict[str, InMemoryCacheStore] = {}

    async def open(self, name: str) -> CacheStore:
        if name not in self._stores:
            self._stores[name] = InMemoryCacheStore(name)
        return self._stores[name]

    async def has(self, name: str) -> bool:
        return name in self._stores

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None

    async def keys(self) -> List[str]:
        return list(self._stores.keys())


class RedisCacheStore(CacheStore):
    """Cache store kept in a Redis hash (request key -> serialized entry)."""

    def __init__(self, name: str, storage: "RedisCacheStorage"):
        super().__init__(name)
        self._storage = storage
        self.logger = storage.logger

    @property
    def redis_key(self) -> str:
        return self._storage.store_key(self.name)

    async def match(self, key: str) -> Optional[WorkerResponse]:
        try:
            redis_client = await self._storage.get_redis()
            raw = await redis_client.hget(self.redis_key, key)
        except Exception as e:
            self.logger.error("Cache get error", cache_name=self.name, key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.deserialize(raw).to_response()
        except (ValueError, KeyError) as e:
            self.logger.warning("Discarding unreadable cache entry", cache_name=self.name, key=key, error=str(e))
            return None

    async def put(self, key: str, response: WorkerResponse) -> bool:
        entry = CacheEntry.from_response(key, response)
        try:
            redis_client = await self._storage.get_redis()
            await self._storage.register(self.name)
            await redis_client.hset(self.redis_key, key, entry.serialize())
            self.logger.debug("Cached response", cache_name=self.name, key=key, size=entry.size)
            return True
        except Exception as e:
            self.logger.error("Cache set error", cache_name=self.name, key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        try:
            redis_client = await self._storage.get_redis()
            return bool(await redis_client.hdel(self.redis_key, key))
        except Exception as e:
            self.logger.error("Cache delete error", cache_name=self.name, key=key, error=str(e))
            return False

    async def keys(self) -> List[str]:
        try:
            redis_client = await self._storage.get_redis()
            raw_keys = await redis_client.hkeys(self.redis_key)
        except Exception as e:
            self.logger.error("Cache keys error", cache_name=self.name, error=str(e))
            return []
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in raw_keys]

    async def entries(self) -> List[CacheEntry]:
        try:
            redis_client = await self._storage.get_redis()
            raw_entries = await redis_client.hgetall(self.redis_key)
        except Exception as e:
            self.logger.error("Cache scan error", cache_name=self.name, error=str(e))
            return []

        entries = []
        for raw in raw_entries.values():
            try:
                entries.append(CacheEntry.deserialize(raw))
            except (ValueError, KeyError):
                continue
        return entries


class RedisCacheStorage(CacheStorage):
    """Cache storage persisted in Redis.

    Store names live in a sorted set scored by creation time so ``keys()``
    keeps creation order; each store is one hash.
    """

    def __init__(self, redis_url: str, namespace: str = "offline"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("offline.cache_store")
        self._redis: Optional[redis.Redis] = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    @property
    def index_key(self) -> str:
        return f"{self.namespace}:stores"

    def store_key(self, name: str) -> str:
        return f"{self.namespace}:store:{name}"

    async def register(self, name: str) -> None:
        redis_client = await self.get_redis()
        await redis_client.zadd(self.index_key, {name: time.time()}, nx=True)

    async def open(self, name: str) -> CacheStore:
        try:
            await self.register(name)
        except Exception as e:
            self.logger.error("Cache open error", cache_name=name, error=str(e))
        return RedisCacheStore(name, self)

    async def has(self, name: str) -> bool:
        try:
            redis_client = await self.get_redis()
            return await redis_client.zscore(self.index_key, name) is not None
        except Exception as e:
            self.logger.error("Cache lookup error", cache_name=name, error=str(e))
            return False

    async def delete(self, name: str) -> bool:
        try:
            redis_client = await self.get_redis()
            removed = await redis_client.zrem(self.index_key, name)
            await redis_client.delete(self.store_key(name))
        except Exception as e:
            self.logger.error("Cache delete error", cache_name=name, error=str(e))
            return False

        if removed:
            self.logger.info("Deleted cache store", cache_name=name)
        return bool(removed)

    async def keys(self) -> List[str]:
        try:
            redis_client = await self.get_redis()
            names = await redis_client.zrange(self.index_key, 0, -1)
        except Exception as e:
            self.logger.error("Cache list error", error=str(e))
            return []
        return [n.decode("utf-8") if isinstance(n, bytes) else n for n in names]

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
