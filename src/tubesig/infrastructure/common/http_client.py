"""Factory for the shared ``httpx.AsyncClient``."""

from __future__ import annotations

import httpx
import structlog

from tubesig.domain.ports.cookies import CookieProviderPort
from tubesig.infrastructure.common.rate_limiter import DomainRateLimiter
from tubesig.infrastructure.common.retry_transport import RetryTransport

log = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


def _cookie_hook(provider: CookieProviderPort):
    async def inject(request: httpx.Request) -> None:
        if "cookie" in request.headers:
            return
        header = provider.cookie_header(f"{request.url.scheme}://{request.url.host}")
        if header:
            request.headers["Cookie"] = header

    return inject


def create_http_client(
    *,
    timeout_seconds: float = 30.0,
    user_agent: str = DEFAULT_USER_AGENT,
    proxy: str | None = None,
    max_retries: int = 3,
    rate_limit_rps: float = 0.0,
    cookies: CookieProviderPort | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the client every network collaborator shares.

    ``transport`` replaces the innermost transport (tests pass a mock);
    rate limiting and retries are always layered on top of it.
    """
    inner = transport or httpx.AsyncHTTPTransport(proxy=proxy)
    wrapped = RetryTransport(
        inner,
        DomainRateLimiter(default_rps=rate_limit_rps),
        max_retries=max_retries,
    )
    hooks = {"request": [_cookie_hook(cookies)]} if cookies is not None else {}
    log.debug(
        "http_client_created",
        timeout=timeout_seconds,
        proxy=bool(proxy),
        max_retries=max_retries,
        rate_limit_rps=rate_limit_rps,
    )
    return httpx.AsyncClient(
        transport=wrapped,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": user_agent},
        follow_redirects=True,
        event_hooks=hooks,
    )
