"""Script fetcher - locates and caches the versioned player script.

The seed page (the platform's embed page) names the current player
script.  Scripts are cached by their absolute URL, not by seed page:
the seed may start pointing elsewhere while an already fetched script
stays valid until its TTL runs out.  Expired scripts are refetched on
the next access only.
"""

from __future__ import annotations

import time
from typing import Callable
from urllib.parse import urljoin

import httpx
import structlog

from tubesig.domain.entities.player import PlayerScript
from tubesig.domain.exceptions import ScriptLocationError
from tubesig.domain.ports.cache import CachePort
from tubesig.infrastructure.cache.memo_cache import SingleFlightCache
from tubesig.infrastructure.player import patterns

log = structlog.get_logger(__name__)

DEFAULT_SEED_URL = "https://www.youtube.com/embed/"
DEFAULT_BASE_URL = "https://www.youtube.com"


def normalize_script_url(raw: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Unescape a script URL taken from page text and make it absolute."""
    url = (
        raw.replace("\\u0026", "&")
        .replace("\\/", "/")
        .replace('\\"', '"')
        .strip()
    )
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        return f"{base_url.rstrip('/')}{url}"
    if not url.startswith(("http://", "https://")):
        return urljoin(f"{base_url.rstrip('/')}/", url)
    return url


def find_script_url(page: str) -> str | None:
    for pattern in patterns.SCRIPT_URL_PATTERNS:
        match = pattern.search(page)
        if match:
            return match.group("url")
    return None


class PlayerScriptFetcher:
    """Fetches player scripts with TTL caching and single-flight dedup.

    Args:
        http_client: Shared client; retries and timeouts live in its transport.
        seed_url: Page whose body names the current script.
        base_url: Origin used for relative script URLs.
        ttl_seconds: Validity window of a fetched script.
        store: Optional persistent store used as a warm-start tier.
        pinned_script_url: Skip the seed lookup and always use this script.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        seed_url: str = DEFAULT_SEED_URL,
        base_url: str = DEFAULT_BASE_URL,
        ttl_seconds: float = 86_400,
        store: CachePort | None = None,
        pinned_script_url: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http_client
        self.seed_url = seed_url
        self.base_url = base_url
        self.ttl_seconds = ttl_seconds
        self._store = store
        self._pinned = normalize_script_url(pinned_script_url, base_url) if pinned_script_url else None
        self._clock = clock
        self._scripts: SingleFlightCache[PlayerScript] = SingleFlightCache(
            name="player_script", default_ttl=ttl_seconds, clock=clock
        )
        self.fetch_count = 0

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    async def locate_script_url(self, seed_url: str | None = None) -> str:
        """Read the seed page and return the absolute script URL.

        Raises:
            ScriptLocationError: Seed page unreachable or no known pattern.
        """
        if self._pinned and seed_url is None:
            return self._pinned

        seed = seed_url or self.seed_url
        try:
            resp = await self._http.get(seed)
        except httpx.HTTPError as exc:
            raise ScriptLocationError(f"seed page unreachable: {exc}", url=seed) from exc
        if resp.status_code != 200:
            raise ScriptLocationError(
                f"seed page returned HTTP {resp.status_code}", url=seed
            )

        raw = find_script_url(resp.text)
        if raw is None:
            raise ScriptLocationError("no player script URL in seed page", url=seed)

        url = normalize_script_url(raw, self.base_url)
        log.debug("player_script_located", seed=seed, script_url=url)
        return url

    async def get_script(self, url: str) -> PlayerScript:
        """Return the cached script for ``url``, fetching it when absent or expired."""
        script = await self._scripts.get_or_populate(url, lambda: self._load(url))
        if script.is_expired(self._clock()):
            self._scripts.invalidate(url)
            script = await self._scripts.get_or_populate(url, lambda: self._load(url))
        return script

    async def get_player_script(self, seed_url: str | None = None) -> PlayerScript:
        url = await self.locate_script_url(seed_url)
        return await self.get_script(url)

    def invalidate(self, url: str) -> None:
        self._scripts.invalidate(url)

    async def _load(self, url: str) -> PlayerScript:
        if self._store is not None:
            warm = await self._from_store(url)
            if warm is not None:
                return warm

        self.fetch_count += 1
        try:
            resp = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise ScriptLocationError(f"player script unreachable: {exc}", url=url) from exc
        if resp.status_code != 200:
            raise ScriptLocationError(
                f"player script returned HTTP {resp.status_code}", url=url
            )

        text = resp.text
        log.info("player_script_fetched", script_url=url, size=len(text))
        if self._store is not None:
            await self._store.set(
                url, {"text": text, "stored_at": time.time()}, ttl=int(self.ttl_seconds)
            )
        return PlayerScript(
            url=url, text=text, fetched_at=self._clock(), ttl_seconds=self.ttl_seconds
        )

    async def _from_store(self, url: str) -> PlayerScript | None:
        if self._store is None:
            return None
        entry = await self._store.get(url)
        if not isinstance(entry, dict) or not entry.get("text"):
            return None
        age = max(0.0, time.time() - float(entry.get("stored_at", 0.0)))
        if age >= self.ttl_seconds:
            return None
        log.debug("player_script_warm_start", script_url=url, age_seconds=int(age))
        # Backdate so the in-memory entry expires together with the stored one.
        return PlayerScript(
            url=url,
            text=entry["text"],
            fetched_at=self._clock() - age,
            ttl_seconds=self.ttl_seconds,
        )
