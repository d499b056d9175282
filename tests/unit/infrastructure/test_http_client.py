"""Tests for the shared HTTP client factory."""

from __future__ import annotations

import httpx
import pytest

from tubesig.infrastructure.common.cookies import StaticCookieProvider
from tubesig.infrastructure.common.http_client import DEFAULT_USER_AGENT, create_http_client
from tubesig.infrastructure.common.retry_transport import RetryTransport


def _recording_transport(seen: list[httpx.Request], status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, text="ok")

    return httpx.MockTransport(handler)


class TestCreateHttpClient:
    @pytest.mark.asyncio()
    async def test_default_headers(self) -> None:
        seen: list[httpx.Request] = []
        async with create_http_client(transport=_recording_transport(seen)) as client:
            await client.get("https://www.youtube.com/embed/")
        assert seen[0].headers["User-Agent"] == DEFAULT_USER_AGENT
        assert "cookie" not in seen[0].headers

    @pytest.mark.asyncio()
    async def test_wraps_transport_with_retries(self) -> None:
        client = create_http_client(transport=_recording_transport([]), max_retries=5)
        transport = client._transport
        assert isinstance(transport, RetryTransport)
        assert transport._max_retries == 5
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_cookie_hook_injects_header(self) -> None:
        seen: list[httpx.Request] = []
        client = create_http_client(
            transport=_recording_transport(seen),
            cookies=StaticCookieProvider("SID=abc"),
        )
        async with client:
            await client.get("https://www.youtube.com/embed/")
        assert seen[0].headers["Cookie"] == "SID=abc"

    @pytest.mark.asyncio()
    async def test_explicit_cookie_header_wins(self) -> None:
        seen: list[httpx.Request] = []
        client = create_http_client(
            transport=_recording_transport(seen),
            cookies=StaticCookieProvider("SID=abc"),
        )
        async with client:
            await client.get("https://www.youtube.com/", headers={"Cookie": "X=1"})
        assert seen[0].headers["Cookie"] == "X=1"

    @pytest.mark.asyncio()
    async def test_empty_provider_adds_nothing(self) -> None:
        seen: list[httpx.Request] = []
        client = create_http_client(
            transport=_recording_transport(seen),
            cookies=StaticCookieProvider(""),
        )
        async with client:
            await client.get("https://www.youtube.com/")
        assert "cookie" not in seen[0].headers
