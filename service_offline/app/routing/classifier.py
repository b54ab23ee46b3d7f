"""
Route classification for the offline cache.

Maps a request path to the category that decides which caching strategy
handles it. Pure and deterministic; recomputed for every request.
"""

import re
from enum import Enum
from typing import FrozenSet
from urllib.parse import urlsplit


class RouteCategory(str, Enum):
    """Route categories, in classification priority order."""
    NO_CACHE = "no_cache"
    API = "api"
    DASHBOARD = "dashboard"
    POST = "post"
    STATIC = "static"
    DEFAULT = "default"


STATIC_EXTENSIONS: FrozenSet[str] = frozenset({
    "js", "mjs", "css", "map",
    "png", "jpg", "jpeg", "gif", "svg", "ico", "webp", "avif",
    "woff", "woff2", "ttf", "otf", "eot",
    "json", "txt", "xml", "webmanifest",
})

IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({
    "png", "jpg", "jpeg", "gif", "svg", "ico", "webp", "avif",
})

STATIC_PREFIXES = ("/icons/", "/_next/")

MUTATING_METHODS: FrozenSet[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

AUTH_PREFIX = "/api/auth"
_POST_EDIT_PATTERN = re.compile(r"^/api/posts/[^/]+/edit(?:/.*)?$")


def _path_of(path_or_url: str) -> str:
    return urlsplit(path_or_url).path or "/"


def _extension(path: str) -> str:
    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return ""
    return last_segment.rsplit(".", 1)[-1].lower()


def is_cacheable_method(method: str) -> bool:
    """Only GET requests ever reach the cache layer."""
    return method.upper() == "GET"


def is_mutating_method(method: str) -> bool:
    """Methods whose offline failures are queued for background sync."""
    return method.upper() in MUTATING_METHODS


def is_auth_route(path_or_url: str) -> bool:
    path = _path_of(path_or_url)
    return path == AUTH_PREFIX or path.startswith(AUTH_PREFIX + "/")


def is_bypassed(path_or_url: str) -> bool:
    """Routes that are always proxied straight to the network, any method."""
    path = _path_of(path_or_url)
    return is_auth_route(path) or bool(_POST_EDIT_PATTERN.match(path))


def is_static_asset(path_or_url: str) -> bool:
    path = _path_of(path_or_url)
    if path.startswith(STATIC_PREFIXES):
        return True
    return _extension(path) in STATIC_EXTENSIONS


def is_image(path_or_url: str) -> bool:
    return _extension(_path_of(path_or_url)) in IMAGE_EXTENSIONS


def classify(path_or_url: str) -> RouteCategory:
    """Classify a request path; query strings are ignored."""
    path = _path_of(path_or_url)

    if path.startswith("/api/"):
        if is_bypassed(path):
            return RouteCategory.NO_CACHE
        return RouteCategory.API

    if path == "/dashboard" or path.startswith("/dashboard/"):
        return RouteCategory.DASHBOARD

    if path.startswith("/post/"):
        return RouteCategory.POST

    if is_static_asset(path):
        return RouteCategory.STATIC

    return RouteCategory.DEFAULT
