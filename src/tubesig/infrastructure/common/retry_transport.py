"""httpx transport adding per-domain throttling and bounded retries."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

from tubesig.infrastructure.common.rate_limiter import DomainRateLimiter

log = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})


def parse_retry_after(headers: httpx.Headers) -> float | None:
    """Seconds from a ``Retry-After`` header; HTTP-date values give ``None``."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps another transport.

    Every attempt first waits for a token from the domain's bucket.  A
    429/503 answer or a connect/read timeout is retried up to
    ``max_retries`` times with exponential backoff plus jitter; a
    ``Retry-After`` header overrides the computed delay.  The final
    response is returned as is, whatever its status.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: DomainRateLimiter,
        *,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        max_backoff: float = 20.0,
        retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._retryable = retryable_status_codes

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        attempt = 0
        while True:
            await self._rate_limiter.acquire(url)
            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.TimeoutException as exc:
                if attempt >= self._max_retries:
                    raise
                delay = self._backoff(attempt)
                log.info(
                    "http_retry_timeout",
                    url=url,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                    error=type(exc).__name__,
                )
            else:
                if response.status_code not in self._retryable:
                    self._rate_limiter.record_success(url)
                    return response
                self._rate_limiter.record_throttle(url)
                if attempt >= self._max_retries:
                    return response
                await response.aread()
                await response.aclose()
                retry_after = parse_retry_after(response.headers)
                delay = (
                    min(retry_after, self._max_backoff)
                    if retry_after is not None
                    else self._backoff(attempt)
                )
                log.info(
                    "http_retry",
                    url=url,
                    status=response.status_code,
                    attempt=attempt + 1,
                    delay=round(delay, 2),
                )
            await asyncio.sleep(delay)
            attempt += 1

    def _backoff(self, attempt: int) -> float:
        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(delay + jitter, self._max_backoff)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
