"""Cookie providers for metadata and media requests."""

from __future__ import annotations

import time
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from urllib.parse import urlsplit

import structlog

from tubesig.domain.exceptions import TubesigError

log = structlog.get_logger(__name__)


class StaticCookieProvider:
    """Returns the same raw ``Cookie:`` header for every origin."""

    def __init__(self, header: str = "") -> None:
        self._header = header.strip()

    def cookie_header(self, origin: str) -> str:
        return self._header


class CookieFileProvider:
    """Cookies read once from a Netscape ``cookies.txt`` export.

    Expired cookies are dropped at lookup time.  Domain matching follows
    the file's own domain column: ``.example.com`` also covers
    subdomains.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        jar = MozillaCookieJar(str(self.path))
        try:
            jar.load(ignore_discard=True, ignore_expires=True)
        except (OSError, LoadError) as exc:
            raise TubesigError(f"cannot read cookie file {self.path}: {exc}") from exc
        self._cookies = list(jar)
        log.debug("cookie_file_loaded", path=str(self.path), cookies=len(self._cookies))

    def cookie_header(self, origin: str) -> str:
        host = urlsplit(origin).hostname or origin
        now = time.time()
        pairs: list[str] = []
        for cookie in self._cookies:
            if cookie.expires and cookie.expires < now:
                continue
            domain = cookie.domain.lstrip(".")
            if host == domain or host.endswith(f".{domain}"):
                pairs.append(f"{cookie.name}={cookie.value or ''}")
        return "; ".join(pairs)


class CombinedCookieProvider:
    """Joins the headers of several providers, skipping empty ones."""

    def __init__(self, *providers: StaticCookieProvider | CookieFileProvider) -> None:
        self._providers = providers

    def cookie_header(self, origin: str) -> str:
        headers = (p.cookie_header(origin) for p in self._providers)
        return "; ".join(h for h in headers if h)
