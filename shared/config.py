"""
Shared configuration management for the blog offline cache service.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PRECACHE_URLS = [
    "/",
    "/offline",
    "/manifest.json",
    "/icons/icon-192x192.png",
    "/icons/icon-512x512.png",
]

DEFAULT_PRELOAD_URLS = [
    "/dashboard",
    "/dashboard/new",
    "/api/public/posts",
    "/api/categories",
    "/api/tags",
]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="OFFLINE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True)

    # Upstream blog origin
    origin_url: str = Field(default="http://localhost:3000")
    network_timeout_seconds: float = Field(default=10.0)

    # Cache storage
    cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_prefix: str = Field(default="blog")
    cache_version: str = Field(default="v2")

    # Worker behaviour
    precache_urls: List[str] = Field(default_factory=lambda: list(DEFAULT_PRECACHE_URLS))
    preload_urls: List[str] = Field(default_factory=lambda: list(DEFAULT_PRELOAD_URLS))
    preload_concurrency: int = Field(default=5)
    cache_only_paths: List[str] = Field(default_factory=lambda: ["/offline"])
    offline_page_path: str = Field(default="/offline")
    skip_waiting_on_install: bool = Field(default=True)

    # Background sync
    sync_tag: str = Field(default="background-sync")
    new_content_path: str = Field(default="/api/public/posts")
    queue_offline_mutations: bool = Field(default=True)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
