"""Tests for MediaStreamer."""

from __future__ import annotations

import httpx
import pytest
import respx
from helpers import make_format, make_resolved_format

from tubesig.domain.exceptions import DownloadError
from tubesig.infrastructure.download.streamer import MediaStreamer

MEDIA_URL = "https://rr1---sn-abc.googlevideo.com/videoplayback?itag=18"
BODY = b"0123456789" * 10


class _ListSink:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.chunks.append(data)


class _AsyncSink:
    def __init__(self) -> None:
        self.data = b""

    async def write(self, data: bytes) -> None:
        self.data += data


class _BrokenSink:
    def write(self, data: bytes) -> None:
        raise OSError("disk full")


class TestMediaStreamer:
    @pytest.mark.asyncio()
    async def test_streams_all_bytes(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=BODY))
        streamer = MediaStreamer(httpx.AsyncClient(), chunk_size=32)
        sink = _ListSink()

        written = await streamer.stream(make_resolved_format(content_length=len(BODY)), sink)

        assert written == len(BODY)
        assert b"".join(sink.chunks) == BODY
        assert max(len(c) for c in sink.chunks) <= 32

    @pytest.mark.asyncio()
    async def test_partial_content_accepted(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(206, content=BODY))
        streamer = MediaStreamer(httpx.AsyncClient())
        assert await streamer.stream(make_resolved_format(), _ListSink()) == len(BODY)

    @pytest.mark.asyncio()
    async def test_async_sink_awaited(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=BODY))
        sink = _AsyncSink()
        await MediaStreamer(httpx.AsyncClient()).stream(make_resolved_format(), sink)
        assert sink.data == BODY

    @pytest.mark.asyncio()
    async def test_progress_reports_running_total(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=BODY))
        progress: list[tuple[int, int | None]] = []
        streamer = MediaStreamer(httpx.AsyncClient(), chunk_size=50)

        await streamer.stream(
            make_resolved_format(),
            _ListSink(),
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(50, 100), (100, 100)]

    @pytest.mark.asyncio()
    async def test_short_transfer_raises(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=BODY))
        streamer = MediaStreamer(httpx.AsyncClient())
        with pytest.raises(DownloadError, match="ended early"):
            await streamer.stream(make_resolved_format(content_length=500), _ListSink())

    @pytest.mark.asyncio()
    async def test_refused_status(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(403))
        streamer = MediaStreamer(httpx.AsyncClient())
        with pytest.raises(DownloadError, match="HTTP 403") as exc_info:
            await streamer.stream(make_resolved_format(), _ListSink())
        assert exc_info.value.url == MEDIA_URL

    @pytest.mark.asyncio()
    async def test_transport_failure_wrapped(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(side_effect=httpx.ConnectError("refused"))
        streamer = MediaStreamer(httpx.AsyncClient())
        with pytest.raises(DownloadError, match="transfer failed") as exc_info:
            await streamer.stream(make_resolved_format(), _ListSink())
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio()
    async def test_sink_failure_wrapped(self, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(MEDIA_URL).mock(return_value=httpx.Response(200, content=BODY))
        streamer = MediaStreamer(httpx.AsyncClient())
        with pytest.raises(DownloadError, match="sink failed|writing to sink"):
            await streamer.stream(make_resolved_format(), _BrokenSink())

    @pytest.mark.asyncio()
    async def test_unresolved_format_rejected(self) -> None:
        streamer = MediaStreamer(httpx.AsyncClient())
        with pytest.raises(DownloadError, match="no resolved URL"):
            await streamer.stream(make_format(), _ListSink())
