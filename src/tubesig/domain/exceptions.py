"""Error taxonomy for tubesig.

Every error that crosses a layer boundary derives from
:class:`TubesigError`.  Errors that belong to one format never abort the
batch they were raised in; errors that belong to a shared player script
affect every format that depends on it.
"""

from __future__ import annotations

from typing import Any

from tubesig.domain.entities.player import TransformKind


class TubesigError(Exception):
    """Base class for all tubesig errors."""


class InvalidVideoIdError(TubesigError):
    """Raised when a video reference cannot be turned into a video id."""


# --- Player script ----------------------------------------------------------


class ScriptLocationError(TubesigError):
    """Seed page unreachable, script URL pattern absent or script not fetchable."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class PatternExtractionError(TubesigError):
    """No known code shape matched the player script for one snippet kind."""

    def __init__(self, kind: TransformKind, *, script_url: str | None = None) -> None:
        super().__init__(f"no {kind.value} program available for {script_url or 'script'}")
        self.kind = kind
        self.script_url = script_url


class TransformExecutionError(TubesigError):
    """A compiled snippet failed to compile or threw while running."""

    def __init__(
        self,
        kind: TransformKind,
        input_value: str | None,
        reason: str,
    ) -> None:
        super().__init__(f"{kind.value} transform failed for {input_value!r}: {reason}")
        self.kind = kind
        self.input_value = input_value
        self.reason = reason


class MalformedCipherPayloadError(TubesigError):
    """A cipher payload blob lacks its inner media URL."""

    def __init__(self, payload: str) -> None:
        super().__init__(f"cipher payload has no url field: {payload[:80]!r}")
        self.payload = payload


# --- Metadata API -----------------------------------------------------------


class PlayerRequestError(TubesigError):
    """A simulated device client could not fetch player metadata."""

    def __init__(
        self,
        message: str,
        *,
        client: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.client = client
        self.status_code = status_code


class PlayabilityError(TubesigError):
    """The platform reported the video as not playable."""

    def __init__(self, status: str, reason: str | None = None) -> None:
        super().__init__(reason or f"video is not playable ({status})")
        self.status = status
        self.reason = reason


class MalformedPlayerResponseError(PlayerRequestError):
    """The metadata response does not describe the requested video."""


class NoPlayableFormatsError(TubesigError):
    """A metadata fetch ended without a single resolvable format."""

    def __init__(
        self,
        video_id: str,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.video_id = video_id
        self.errors: dict[str, Exception] = dict(errors or {})
        detail = "; ".join(f"{name}: {err}" for name, err in self.errors.items())
        message = f"no playable formats found for {video_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FormatSelectionError(TubesigError, ValueError):
    """No format matches the requested quality or filter."""


class DownloadError(TubesigError):
    """Streaming a resolved format to its sink failed."""

    def __init__(self, message: str, *, url: str | None = None, cause: Any = None) -> None:
        super().__init__(message)
        self.url = url
        self.cause = cause
