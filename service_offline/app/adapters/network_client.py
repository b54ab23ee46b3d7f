"""
Network client for the blog origin.
"""

from typing import Optional
import time

import httpx

from shared.logging import get_logger
from shared.errors import NetworkError
from ..models import WorkerRequest, WorkerResponse


# Hop-by-hop or transport headers that must not be forwarded or cached
_SKIP_REQUEST_HEADERS = frozenset({"host", "content-length", "connection", "transfer-encoding"})
_SKIP_RESPONSE_HEADERS = frozenset({"content-length", "connection", "transfer-encoding", "content-encoding"})


class NetworkClient:
    """Fetches requests from the blog origin.

    ``fetch`` returns a response for every HTTP status and raises
    ``NetworkError`` only when no response arrived (offline, DNS failure,
    timeout). The outcome of the last fetch drives ``online``.
    """

    def __init__(
        self,
        origin_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = origin_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("offline.network")
        self._client = client
        self.online = True
        self.last_failure_at: Optional[float] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def fetch(self, request: WorkerRequest) -> WorkerResponse:
        """Send ``request`` to the origin."""
        headers = {k: v for k, v in request.headers.items() if k not in _SKIP_REQUEST_HEADERS}
        client = self._get_client()

        try:
            response = await client.request(
                request.method,
                request.url,
                headers=headers,
                content=request.body or None,
            )
        except httpx.TransportError as exc:
            self._mark_offline()
            self.logger.warning(
                "Network request failed",
                method=request.method,
                url=request.url,
                error=str(exc) or exc.__class__.__name__,
            )
            raise NetworkError(request.url, str(exc) or exc.__class__.__name__)

        self.online = True
        self.logger.debug(
            "Network response received",
            method=request.method,
            url=request.url,
            status_code=response.status_code,
        )
        headers = {}
        set_cookies = []
        for key, value in response.headers.multi_items():
            key = key.lower()
            if key == "set-cookie":
                set_cookies.append(value)
            elif key not in _SKIP_RESPONSE_HEADERS:
                headers[key] = value

        return WorkerResponse(
            status=response.status_code,
            headers=headers,
            body=response.content,
            url=request.cache_key,
            set_cookies=set_cookies,
        )

    async def get(self, url: str) -> WorkerResponse:
        return await self.fetch(WorkerRequest("GET", url))

    def _mark_offline(self) -> None:
        self.online = False
        self.last_failure_at = time.time()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
