"""Domain entities for player scripts and the snippets extracted from them.

Pure value objects - no framework dependencies, no I/O.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

# Reserved identifiers bound to the input of a compiled snippet.
DECIPHER_ARGUMENT = "sig"
N_ARGUMENT = "ncode"


class TransformKind(str, Enum):
    """Which of the two descrambling programs a snippet implements."""

    SIGNATURE = "signature"
    N_TRANSFORM = "n"

    @property
    def argument(self) -> str:
        return DECIPHER_ARGUMENT if self is TransformKind.SIGNATURE else N_ARGUMENT


@dataclass(frozen=True)
class PlayerScript:
    """Raw text of one versioned player script.

    Identified by its absolute URL.  Never mutated: an expired script is
    superseded by a fresh fetch of the same URL.
    """

    url: str
    text: str
    fetched_at: float = field(default_factory=time.monotonic)
    ttl_seconds: float = 86_400.0

    def is_expired(self, now: float | None = None) -> bool:
        current = time.monotonic() if now is None else now
        return current - self.fetched_at >= self.ttl_seconds


@dataclass(frozen=True)
class Snippet:
    """Self-contained source for one descrambling function.

    ``declarations`` is everything the entry function needs (helper
    objects, lookup arrays, stubs and the function itself).  The snippet
    is invoked as ``entry(argument)``.
    """

    kind: TransformKind
    declarations: tuple[str, ...]
    entry: str

    @property
    def argument(self) -> str:
        return self.kind.argument

    @property
    def source(self) -> str:
        return "\n".join(self.declarations)

    @property
    def caller(self) -> str:
        return f"{self.entry}({self.argument});"

    @property
    def text(self) -> str:
        """Full snippet text: declarations followed by the call expression."""
        return f"{self.source}\n{self.caller}"


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of running the extractor over one script."""

    decipher: Snippet | None = None
    n_transform: Snippet | None = None
    signature_timestamp: int | None = None
