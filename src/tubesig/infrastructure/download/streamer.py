"""Sequential media streaming into a caller-supplied sink."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Protocol

import httpx
import structlog

from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.exceptions import DownloadError

log = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 512 * 1024


class Sink(Protocol):
    """Anything with ``write(bytes)``; the result may be awaitable."""

    def write(self, data: bytes) -> Any: ...


ProgressCallback = Callable[[int, int | None], None]


class MediaStreamer:
    """Streams the bytes of a resolved format.

    Args:
        http_client: Shared client.
        chunk_size: Read size handed to the sink per write.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._http = http_client
        self.chunk_size = chunk_size

    async def stream(
        self,
        fmt: FormatDescriptor,
        sink: Sink,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Write every byte of ``fmt`` to ``sink``; return the byte count.

        Raises:
            DownloadError: The format has no resolved URL, the server
                refused, the transfer broke off or the sink failed.
        """
        if not fmt.is_playable or not fmt.url:
            raise DownloadError(f"format {fmt.itag} has no resolved URL")

        url = fmt.url
        total = fmt.content_length
        written = 0
        log.info("download_started", itag=fmt.itag, client=fmt.client, size=total)
        try:
            async with self._http.stream("GET", url) as resp:
                if resp.status_code not in (200, 206):
                    raise DownloadError(
                        f"media request returned HTTP {resp.status_code}", url=url
                    )
                if total is None:
                    header = resp.headers.get("content-length")
                    total = int(header) if header and header.isdigit() else None
                async for chunk in resp.aiter_bytes(self.chunk_size):
                    result = sink.write(chunk)
                    if inspect.isawaitable(result):
                        await result
                    written += len(chunk)
                    if on_progress is not None:
                        on_progress(written, total)
        except httpx.HTTPError as exc:
            raise DownloadError(f"media transfer failed: {exc}", url=url, cause=exc) from exc
        except OSError as exc:
            raise DownloadError(f"writing to sink failed: {exc}", url=url, cause=exc) from exc

        if total is not None and written < total:
            raise DownloadError(
                f"media transfer ended early ({written} of {total} bytes)", url=url
            )
        log.info("download_finished", itag=fmt.itag, bytes=written)
        return written
