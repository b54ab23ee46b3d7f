#!/usr/bin/env python3
"""
Warm the offline cache with the blog's most requested routes.

This helper mirrors the settings panel's "Preload Resources" action but can be
executed manually from a developer workstation or CI job. It fetches each
route from the blog origin and stores successful responses in the dynamic
cache of the configured backend.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import get_config  # noqa: E402
from shared.logging import configure_logging  # noqa: E402
from service_offline.app.adapters.network_client import NetworkClient  # noqa: E402
from service_offline.app.caching import build_cache_storage  # noqa: E402
from service_offline.app.caching.cache_manager import CacheManager  # noqa: E402
from service_offline.app.caching.cache_names import CacheNames  # noqa: E402


async def warm(
    *,
    origin_url: str,
    cache_backend: str,
    redis_url: str,
    cache_version: str,
    urls: Optional[List[str]],
    concurrency: int,
    dry_run: bool,
) -> dict:
    """Execute cache warming and return the summary."""
    config = get_config(
        "cache-warm",
        0,
        origin_url=origin_url,
        cache_backend=cache_backend,
        redis_url=redis_url,
        cache_version=cache_version,
    )
    targets = urls or config.preload_urls

    if dry_run:
        return {"planned": len(targets), "urls": targets, "dry_run": True}

    network = NetworkClient(config.origin_url, timeout=config.network_timeout_seconds)
    storage = build_cache_storage(config)
    manager = CacheManager(
        storage,
        network,
        CacheNames(config.cache_prefix, config.cache_version),
        preload_urls=targets,
        preload_concurrency=concurrency,
    )
    try:
        summary = await manager.preload()
    finally:
        await network.close()
        close = getattr(storage, "close", None)
        if close is not None:
            await close()
    return summary.to_dict()


def _parse_args() -> argparse.Namespace:
    defaults = get_config("cache-warm", 0)
    parser = argparse.ArgumentParser(description="Warm the blog offline cache.")
    parser.add_argument("--origin-url", default=defaults.origin_url, help="Blog origin URL")
    parser.add_argument("--backend", default="redis", choices=["redis", "memory"], help="Cache backend to warm")
    parser.add_argument("--redis-url", default=defaults.redis_url, help="Redis connection URL")
    parser.add_argument("--cache-version", default=defaults.cache_version, help="Cache version suffix")
    parser.add_argument("--url", dest="urls", action="append", default=None, help="Route to warm (repeatable)")
    parser.add_argument("--concurrency", type=int, default=defaults.preload_concurrency, help="Concurrent fetches")
    parser.add_argument("--dry-run", action="store_true", help="Print planned routes without fetching")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("cache-warm", "warning")
    try:
        summary = asyncio.run(
            warm(
                origin_url=args.origin_url,
                cache_backend=args.backend,
                redis_url=args.redis_url,
                cache_version=args.cache_version,
                urls=args.urls,
                concurrency=args.concurrency,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[cache-warm] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[cache-warm] DRY RUN - no fetches executed")

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return exit_code(summary)


def exit_code(summary: dict) -> int:
    """Non-zero when any route failed or the preload was skipped."""
    if summary.get("dry_run"):
        return 0
    return 1 if summary.get("failed") or summary.get("skipped") else 0


if __name__ == "__main__":
    raise SystemExit(main())
