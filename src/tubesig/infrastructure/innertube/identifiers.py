"""Video id parsing and request nonces."""

from __future__ import annotations

import re
import secrets
from urllib.parse import parse_qs, urlsplit

from tubesig.domain.exceptions import InvalidVideoIdError

NONCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

_VIDEO_ID = re.compile(r"^[\w-]{11}$")
_VALID_HOSTS = frozenset(
    {
        "youtube.com",
        "www.youtube.com",
        "m.youtube.com",
        "music.youtube.com",
        "gaming.youtube.com",
        "youtube-nocookie.com",
        "www.youtube-nocookie.com",
    }
)
_SHORT_HOSTS = frozenset({"youtu.be", "www.youtu.be"})
_PATH_PREFIXES = ("embed", "shorts", "live", "v", "e")


def generate_nonce(length: int) -> str:
    """Random string over the client playback nonce alphabet."""
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def validate_id(value: str) -> bool:
    return bool(_VIDEO_ID.match(value))


def parse_video_id(reference: str) -> str:
    """Accept a bare 11-character id or a watch/short/embed/shorts/live URL.

    Raises:
        InvalidVideoIdError: Nothing recognisable as a video id.
    """
    reference = reference.strip()
    if validate_id(reference):
        return reference

    url = reference if "://" in reference else f"https://{reference}"
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    segments = [s for s in parts.path.split("/") if s]

    candidate: str | None = None
    if host in _SHORT_HOSTS:
        candidate = segments[0] if segments else None
    elif host in _VALID_HOSTS:
        query = parse_qs(parts.query)
        if "v" in query:
            candidate = query["v"][0]
        elif len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
            candidate = segments[1]
    else:
        raise InvalidVideoIdError(f"not a known video host: {host or reference!r}")

    if candidate is None:
        raise InvalidVideoIdError(f"no video id found in {reference!r}")
    candidate = candidate[:11]
    if not validate_id(candidate):
        raise InvalidVideoIdError(f"video id {candidate!r} has an unexpected shape")
    return candidate
