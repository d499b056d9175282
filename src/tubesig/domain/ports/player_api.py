"""Port for the platform's player metadata API."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from tubesig.domain.entities.clients import ClientProfile


@runtime_checkable
class PlayerApiPort(Protocol):
    """Fetches the raw player response for a video as one device client."""

    async def fetch_player(
        self,
        video_id: str,
        client: ClientProfile,
        *,
        signature_timestamp: int | None = None,
    ) -> dict[str, Any]:
        """Return the validated player response.

        Raises PlayabilityError, MalformedPlayerResponseError or
        PlayerRequestError.
        """
        ...
