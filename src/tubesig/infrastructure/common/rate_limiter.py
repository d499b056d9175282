"""Per-host token-bucket throttling for outgoing requests.

The platform serves the embed page, player scripts, the player API and
media from different hosts.  Each registrable domain gets its own bucket
so a burst of media range requests never starves player API calls.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable
from urllib.parse import urlsplit

import structlog

log = structlog.get_logger(__name__)


class TokenBucket:
    """Token bucket with multiplicative slow-down on throttling.

    Args:
        rate: Tokens replenished per second. ``0`` disables throttling.
        burst: Maximum bucket size.
        min_rate: Floor for the rate after repeated throttling.
    """

    def __init__(
        self,
        rate: float,
        burst: int = 10,
        *,
        min_rate: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._initial_rate = rate
        self._rate = rate
        self._burst = burst
        self._min_rate = min_rate
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        if self._rate <= 0:
            return

        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens -= 1.0

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

    def record_throttle(self) -> None:
        """Halve the rate after a 429/503."""
        if self._rate <= 0:
            return
        old = self._rate
        self._rate = max(self._min_rate, self._rate * 0.5)
        log.debug("rate_limit_throttle", old_rps=round(old, 2), new_rps=round(self._rate, 2))

    def record_success(self) -> None:
        """Recover 10% of the rate, never above the configured one."""
        if self._rate <= 0:
            return
        self._rate = min(self._initial_rate, self._rate * 1.1)


def registrable_domain(url: str) -> str:
    """``rr3---sn-abc.googlevideo.com`` -> ``googlevideo.com``."""
    hostname = urlsplit(url).hostname or ""
    parts = [p for p in hostname.split(".") if p]
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


class DomainRateLimiter:
    """One :class:`TokenBucket` per registrable domain.

    Args:
        default_rps: Requests per second per domain. ``0`` = unlimited.
        burst: Maximum burst size per domain.
    """

    def __init__(self, default_rps: float = 5.0, burst: int = 10) -> None:
        self._default_rps = default_rps
        self._burst = burst
        self._buckets: dict[str, TokenBucket] = {}

    @property
    def enabled(self) -> bool:
        return self._default_rps > 0

    def bucket_for(self, url: str) -> TokenBucket | None:
        domain = registrable_domain(url)
        if not domain:
            return None
        bucket = self._buckets.get(domain)
        if bucket is None:
            bucket = self._buckets[domain] = TokenBucket(
                rate=self._default_rps, burst=self._burst
            )
        return bucket

    async def acquire(self, url: str) -> None:
        if not self.enabled:
            return
        bucket = self.bucket_for(url)
        if bucket is not None:
            await bucket.acquire()

    def record_throttle(self, url: str) -> None:
        bucket = self._buckets.get(registrable_domain(url))
        if bucket is not None:
            bucket.record_throttle()

    def record_success(self, url: str) -> None:
        bucket = self._buckets.get(registrable_domain(url))
        if bucket is not None:
            bucket.record_success()
