"""
Unit tests for the origin network client.
"""

import httpx
import pytest

from shared.errors import NetworkError
from service_offline.app.adapters.network_client import NetworkClient
from service_offline.app.models import WorkerRequest


def _client_for(handler):
    transport = httpx.MockTransport(handler)
    http_client = httpx.AsyncClient(base_url="http://blog.test", transport=transport)
    return NetworkClient("http://blog.test", client=http_client)


class TestNetworkClient:
    """Test cases for NetworkClient."""

    @pytest.mark.asyncio
    async def test_fetch_returns_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["host"] = request.headers.get("host")
            seen["accept"] = request.headers.get("accept")
            return httpx.Response(200, json={"posts": []})

        client = _client_for(handler)
        response = await client.fetch(WorkerRequest(
            "GET",
            "/api/public/posts?page=2",
            {"Accept": "application/json", "Host": "proxy.local"},
        ))

        assert response.status == 200
        assert response.json() == {"posts": []}
        assert response.url == "/api/public/posts?page=2"
        assert "content-length" not in response.headers
        assert seen["method"] == "GET"
        assert seen["url"] == "http://blog.test/api/public/posts?page=2"
        assert seen["host"] == "blog.test"
        assert seen["accept"] == "application/json"
        await client.close()

    @pytest.mark.asyncio
    async def test_http_errors_are_responses(self):
        client = _client_for(lambda request: httpx.Response(500, text="boom"))

        response = await client.fetch(WorkerRequest("GET", "/api/tags"))

        assert response.status == 500
        assert not response.ok
        assert client.online

    @pytest.mark.asyncio
    async def test_keeps_each_set_cookie_header(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers=[
                    ("Set-Cookie", "session=abc; Path=/; HttpOnly"),
                    ("Set-Cookie", "csrf=xyz; Path=/"),
                    ("Content-Type", "application/json"),
                ],
                content=b"{}",
            )

        client = _client_for(handler)
        response = await client.fetch(WorkerRequest("POST", "/api/auth/signin"))

        assert response.set_cookies == ["session=abc; Path=/; HttpOnly", "csrf=xyz; Path=/"]
        assert "set-cookie" not in response.headers
        assert response.headers["content-type"] == "application/json"
        assert response.clone().set_cookies == response.set_cookies

    @pytest.mark.asyncio
    async def test_forwards_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            return httpx.Response(201, json={"id": 1})

        client = _client_for(handler)
        response = await client.fetch(WorkerRequest("POST", "/api/posts", body=b'{"title": "x"}'))

        assert response.status == 201
        assert seen["body"] == b'{"title": "x"}'

    @pytest.mark.asyncio
    async def test_transport_error_raises_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client_for(handler)

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch(WorkerRequest("GET", "/api/tags"))

        assert exc_info.value.url == "/api/tags"
        assert not client.online
        assert client.last_failure_at is not None

    @pytest.mark.asyncio
    async def test_recovers_online_after_success(self):
        state = {"fail": True}

        def handler(request: httpx.Request) -> httpx.Response:
            if state["fail"]:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, text="ok")

        client = _client_for(handler)
        with pytest.raises(NetworkError):
            await client.get("/")
        assert not client.online

        state["fail"] = False
        response = await client.get("/")

        assert response.text() == "ok"
        assert client.online
