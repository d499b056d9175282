"""Ports exposed by the signature core to the orchestrator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.entities.player import TransformKind


@runtime_checkable
class TransformProgram(Protocol):
    """A compiled descrambling function with a single string input."""

    @property
    def kind(self) -> TransformKind: ...

    def run(self, value: str) -> str:
        """Apply the transform. Raises TransformExecutionError on failure."""
        ...


@runtime_checkable
class PlayerFunctionsPort(Protocol):
    """Compiled programs and batch deciphering for one player script URL."""

    async def locate_script_url(self) -> str:
        """Absolute URL of the current player script.

        Raises ScriptLocationError.
        """
        ...

    async def get_signature_timestamp(self, script_url: str) -> int | None: ...

    async def get_functions(
        self, script_url: str
    ) -> tuple[TransformProgram | None, TransformProgram | None]:
        """Return ``(decipher, n_transform)``; either may be None."""
        ...

    async def decipher_formats(
        self, formats: list[FormatDescriptor], script_url: str | None
    ) -> dict[str, FormatDescriptor]:
        """Resolve a batch. Never raises for an individual format."""
        ...
