"""
Request/response models passed between the worker, strategies and stores.
"""

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from shared.errors import BodyAlreadyConsumedError


def _normalize_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {str(k).lower(): str(v) for k, v in (headers or {}).items()}


@dataclass
class WorkerRequest:
    """A request intercepted by the worker."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = _normalize_headers(self.headers)

    @property
    def path(self) -> str:
        """URL path without query string."""
        return urlsplit(self.url).path or "/"

    @property
    def cache_key(self) -> str:
        """Key used for cache lookups: path plus query string."""
        parts = urlsplit(self.url)
        key = parts.path or "/"
        if parts.query:
            key = f"{key}?{parts.query}"
        return key


class WorkerResponse:
    """HTTP response whose body can be consumed exactly once.

    Writing a response to a cache store reads its body, so strategies put a
    ``clone()`` into the cache and hand the original back to the caller.

    ``headers`` holds one value per name. Repeated ``Set-Cookie`` values are
    kept apart in ``set_cookies``; they are forwarded to the client but never
    written to a cache store.
    """

    def __init__(
        self,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        url: str = "",
        set_cookies: Optional[List[str]] = None,
    ):
        self.status = status
        self.headers = _normalize_headers(headers)
        self.url = url
        self.set_cookies = list(set_cookies or [])
        self._body = body
        self.body_used = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    def clone(self) -> "WorkerResponse":
        if self.body_used:
            raise BodyAlreadyConsumedError(self.url)
        return WorkerResponse(self.status, dict(self.headers), self._body, self.url, self.set_cookies)

    def read(self) -> bytes:
        if self.body_used:
            raise BodyAlreadyConsumedError(self.url)
        self.body_used = True
        return self._body

    def json(self) -> Any:
        return json.loads(self.read().decode("utf-8"))

    def text(self) -> str:
        return self.read().decode("utf-8")

    @classmethod
    def from_json(cls, data: Any, status: int = 200, url: str = "") -> "WorkerResponse":
        return cls(
            status=status,
            headers={"content-type": "application/json"},
            body=json.dumps(data).encode("utf-8"),
            url=url,
        )

    def __repr__(self) -> str:
        return f"WorkerResponse(status={self.status}, url={self.url!r}, body_used={self.body_used})"


@dataclass
class CacheEntry:
    """A stored response, owned by exactly one named cache store."""

    request_key: str
    status: int
    headers: Dict[str, str]
    body: bytes
    url: str = ""
    stored_at: float = field(default_factory=time.time)

    @classmethod
    def from_response(cls, request_key: str, response: WorkerResponse) -> "CacheEntry":
        """Build an entry by consuming ``response``'s body."""
        body = response.read()
        return cls(
            request_key=request_key,
            status=response.status,
            headers=dict(response.headers),
            body=body,
            url=response.url or request_key,
        )

    def to_response(self) -> WorkerResponse:
        """Return a fresh, unconsumed response for this entry."""
        return WorkerResponse(self.status, dict(self.headers), self.body, self.url)

    @property
    def size(self) -> int:
        return len(self.body)

    def serialize(self) -> str:
        return json.dumps({
            "request_key": self.request_key,
            "status": self.status,
            "headers": self.headers,
            "body": base64.b64encode(self.body).decode("ascii"),
            "url": self.url,
            "stored_at": self.stored_at,
        })

    @classmethod
    def deserialize(cls, raw: Any) -> "CacheEntry":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        return cls(
            request_key=data["request_key"],
            status=int(data["status"]),
            headers=data.get("headers", {}),
            body=base64.b64decode(data.get("body", "")),
            url=data.get("url", ""),
            stored_at=float(data.get("stored_at", 0.0)),
        )
