"""Common infrastructure - HTTP client, throttling and cookies."""

from __future__ import annotations

from .cookies import CombinedCookieProvider, CookieFileProvider, StaticCookieProvider
from .http_client import DEFAULT_USER_AGENT, create_http_client
from .rate_limiter import DomainRateLimiter, TokenBucket
from .retry_transport import RetryTransport

__all__ = [
    "DEFAULT_USER_AGENT",
    "CombinedCookieProvider",
    "CookieFileProvider",
    "DomainRateLimiter",
    "RetryTransport",
    "StaticCookieProvider",
    "TokenBucket",
    "create_http_client",
]
