"""Player metadata API client.

One POST per simulated device client.  The response is checked for
playability and must describe the requested video; anything else is
raised as a typed error carrying the client name.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from tubesig.domain.entities.clients import ClientProfile
from tubesig.domain.exceptions import (
    MalformedPlayerResponseError,
    PlayabilityError,
    PlayerRequestError,
)
from tubesig.infrastructure.innertube.identifiers import generate_nonce

log = structlog.get_logger(__name__)

PLAYER_API_URL = "https://youtubei.googleapis.com/youtubei/v1/player"

_FATAL_STATUSES = ("ERROR", "LOGIN_REQUIRED")
_DEFAULT_REASONS = {
    "LIVE_STREAM_OFFLINE": "The live stream is offline.",
    "UNPLAYABLE": "This video is unavailable.",
}


def playability_error(response: dict[str, Any]) -> PlayabilityError | None:
    """Error for a response whose playability status forbids playback."""
    playability = response.get("playabilityStatus")
    if not isinstance(playability, dict):
        return None
    status = playability.get("status")
    if status in _FATAL_STATUSES:
        reason = playability.get("reason")
        if not reason:
            messages = playability.get("messages") or []
            reason = messages[0] if messages else None
        return PlayabilityError(status, reason)
    if status in _DEFAULT_REASONS:
        return PlayabilityError(status, playability.get("reason") or _DEFAULT_REASONS[status])
    return None


def visitor_data_from(response: dict[str, Any]) -> str | None:
    """``visitor_data`` from the GFEEDBACK service tracking params."""
    context = response.get("responseContext") or {}
    for service in context.get("serviceTrackingParams") or []:
        if service.get("service") != "GFEEDBACK":
            continue
        for param in service.get("params") or []:
            if param.get("key") == "visitor_data" and param.get("value"):
                return param["value"]
    return None


def build_payload(
    video_id: str,
    client: ClientProfile,
    *,
    signature_timestamp: int | None = None,
    visitor_data: str | None = None,
    po_token: str | None = None,
) -> dict[str, Any]:
    context: dict[str, Any] = {"client": client.context_client()}
    payload: dict[str, Any] = {
        "context": context,
        "videoId": video_id,
        "contentCheckOk": True,
        "racyCheckOk": True,
    }
    if client.mobile:
        payload["cpn"] = generate_nonce(16)
        context["request"] = {"internalExperimentFlags": [], "useSsl": True}
        context["user"] = {"lockedSafetyMode": False}
    if client.uses_player_script:
        playback: dict[str, Any] = {"html5Preference": "HTML5_PREF_WANTS"}
        if signature_timestamp is not None:
            playback["signatureTimestamp"] = signature_timestamp
        payload["playbackContext"] = {"contentPlaybackContext": playback}
    if visitor_data:
        context["client"]["visitorData"] = visitor_data
    if po_token:
        payload["serviceIntegrityDimensions"] = {"poToken": po_token}
    return payload


class PlayerApi:
    """Fetches raw player responses as any built-in device client.

    Args:
        http_client: Shared client (cookies are injected by its hook).
        visitor_data: Session visitor id; when absent, the first one the
            platform hands out is reused for later requests.
        po_token: Proof-of-origin token sent in the request body.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        visitor_data: str | None = None,
        po_token: str | None = None,
        api_url: str = PLAYER_API_URL,
    ) -> None:
        self._http = http_client
        self.visitor_data = visitor_data
        self.po_token = po_token
        self.api_url = api_url

    def _headers(self, client: ClientProfile) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Format-Version": "2",
        }
        if client.user_agent:
            headers["User-Agent"] = client.user_agent
        if client.client_id:
            headers["X-Youtube-Client-Name"] = client.client_id
            headers["X-Youtube-Client-Version"] = client.client_version
        if self.visitor_data:
            headers["X-Goog-Visitor-Id"] = self.visitor_data
        return headers

    async def fetch_player(
        self,
        video_id: str,
        client: ClientProfile,
        *,
        signature_timestamp: int | None = None,
    ) -> dict[str, Any]:
        payload = build_payload(
            video_id,
            client,
            signature_timestamp=signature_timestamp,
            visitor_data=self.visitor_data,
            po_token=self.po_token,
        )
        params = {"prettyPrint": "false", "t": generate_nonce(12), "id": video_id}
        try:
            resp = await self._http.post(
                self.api_url,
                params=params,
                headers=self._headers(client),
                content=json.dumps(payload),
            )
        except httpx.HTTPError as exc:
            raise PlayerRequestError(
                f"{client.name} player request failed: {exc}", client=client.name
            ) from exc

        if resp.status_code != 200:
            raise PlayerRequestError(
                f"{client.name} player request returned HTTP {resp.status_code}",
                client=client.name,
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedPlayerResponseError(
                f"{client.name} player response is not JSON", client=client.name
            ) from exc
        if not isinstance(data, dict):
            raise MalformedPlayerResponseError(
                f"{client.name} player response is not an object", client=client.name
            )

        error = playability_error(data)
        if error is not None:
            log.info(
                "player_unplayable",
                video_id=video_id,
                client=client.name,
                status=error.status,
                reason=error.reason,
            )
            raise error

        details = data.get("videoDetails") or {}
        if details.get("videoId") != video_id:
            raise MalformedPlayerResponseError(
                f"{client.name} player response describes {details.get('videoId')!r}",
                client=client.name,
            )

        if not self.visitor_data:
            learned = visitor_data_from(data)
            if learned:
                self.visitor_data = learned
                log.debug("visitor_data_learned", client=client.name)

        streaming = data.get("streamingData") or {}
        log.debug(
            "player_response_received",
            video_id=video_id,
            client=client.name,
            formats=len(streaming.get("formats") or [])
            + len(streaming.get("adaptiveFormats") or []),
        )
        return data
