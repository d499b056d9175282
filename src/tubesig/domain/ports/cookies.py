"""Port for the cookie/session context handed to metadata requests."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CookieProviderPort(Protocol):
    """Supplies a serialized ``Cookie:`` header for a target origin.

    The value is opaque to tubesig; an empty string means no cookies.
    """

    def cookie_header(self, origin: str) -> str: ...
