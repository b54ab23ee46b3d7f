"""
Offline caching package.

Named, versioned cache stores with in-memory and Redis backends, plus the
manager used by the settings panel. Stale versions are only ever removed
wholesale, on worker activation.
"""

from typing import Optional

from shared.config import BaseConfig
from .cache_store import CacheStorage, InMemoryCacheStorage, RedisCacheStorage


def build_cache_storage(config: BaseConfig) -> Optional[CacheStorage]:
    """Storage for the configured backend; None when caching is disabled."""
    backend = config.cache_backend.lower()
    if backend == "redis":
        return RedisCacheStorage(config.redis_url, namespace=f"{config.cache_prefix}-offline")
    if backend == "memory":
        return InMemoryCacheStorage()
    return None
