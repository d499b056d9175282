"""Video info use case - metadata from several device clients, resolved.

Steps:
1. Parse the video reference into an id.
2. Locate the current player script and read its signature timestamp.
   Failure here only means web-like clients go without the timestamp
   and signatures cannot be deciphered.
3. Query every configured device client concurrently.
4. Resolve all returned formats in one batch against the script.
5. Deduplicate by itag (ANDROID_VR URLs win), derive metadata, rank.
6. Append the PO token to every URL when one is configured.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from tubesig.domain.entities.clients import ClientProfile
from tubesig.domain.entities.formats import FormatDescriptor, VideoInfo
from tubesig.domain.exceptions import (
    NoPlayableFormatsError,
    PlayabilityError,
    ScriptLocationError,
    TubesigError,
)
from tubesig.domain.ports.player_api import PlayerApiPort
from tubesig.domain.ports.player_functions import PlayerFunctionsPort

log = structlog.get_logger(__name__)

PREFERRED_CLIENT_PARAM = "ANDROID_VR"

# Injected pure functions (infrastructure satisfies these).
_ParseIdFn = Callable[[str], str]
_EnrichFn = Callable[[FormatDescriptor], FormatDescriptor]
_SortFn = Callable[[list[FormatDescriptor]], list[FormatDescriptor]]


def _query_value(url: str, name: str) -> str | None:
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == name:
            return value
    return None


def with_po_token(url: str, po_token: str) -> str:
    """Set ``pot`` and ``potc=1`` on a media URL."""
    parts = urlsplit(url)
    params = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("pot", "potc")
    ]
    params += [("pot", po_token), ("potc", "1")]
    return urlunsplit(parts._replace(query=urlencode(params)))


def raw_formats(response: dict[str, Any]) -> list[dict[str, Any]]:
    streaming = response.get("streamingData") or {}
    return [
        *(streaming.get("formats") or []),
        *(streaming.get("adaptiveFormats") or []),
    ]


def merge_formats(formats: Sequence[FormatDescriptor]) -> list[FormatDescriptor]:
    """One format per itag, first seen wins unless a later one was served
    for the ANDROID_VR client and the kept one was not."""
    by_itag: dict[int, FormatDescriptor] = {}
    for fmt in formats:
        if not fmt.is_playable or not fmt.url or not fmt.mime_type:
            continue
        existing = by_itag.get(fmt.itag)
        if existing is None:
            by_itag[fmt.itag] = fmt
            continue
        if (
            _query_value(fmt.url, "c") == PREFERRED_CLIENT_PARAM
            and _query_value(existing.url or "", "c") != PREFERRED_CLIENT_PARAM
        ):
            by_itag[fmt.itag] = fmt
    return list(by_itag.values())


class VideoInfoUseCase:
    """Collects, resolves and ranks the formats of one video."""

    def __init__(
        self,
        *,
        player_api: PlayerApiPort,
        functions: PlayerFunctionsPort,
        clients: Sequence[ClientProfile],
        parse_id_fn: _ParseIdFn,
        enrich_fn: _EnrichFn,
        sort_fn: _SortFn,
        po_token: str | None = None,
    ) -> None:
        if not clients:
            raise ValueError("at least one client profile is required")
        self._api = player_api
        self._functions = functions
        self._clients = list(clients)
        self._parse_id = parse_id_fn
        self._enrich = enrich_fn
        self._sort = sort_fn
        self._po_token = po_token

    async def _script_context(self) -> tuple[str | None, int | None]:
        try:
            script_url = await self._functions.locate_script_url()
        except ScriptLocationError as exc:
            log.warning("player_script_unavailable", error=str(exc), url=exc.url)
            return None, None
        try:
            sts = await self._functions.get_signature_timestamp(script_url)
        except ScriptLocationError as exc:
            log.warning("player_script_unavailable", error=str(exc), url=exc.url)
            return script_url, None
        return script_url, sts

    async def _query_clients(
        self, video_id: str, sts: int | None
    ) -> tuple[list[tuple[ClientProfile, dict[str, Any]]], dict[str, Exception]]:
        results = await asyncio.gather(
            *(
                self._api.fetch_player(video_id, client, signature_timestamp=sts)
                for client in self._clients
            ),
            return_exceptions=True,
        )
        responses: list[tuple[ClientProfile, dict[str, Any]]] = []
        errors: dict[str, Exception] = {}
        for client, result in zip(self._clients, results):
            if isinstance(result, TubesigError):
                errors[client.name] = result
                log.info(
                    "client_request_failed",
                    video_id=video_id,
                    client=client.name,
                    error=str(result),
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                responses.append((client, result))
        return responses, errors

    async def execute(self, reference: str) -> VideoInfo:
        """Return the resolved, ranked formats of ``reference``.

        Raises:
            InvalidVideoIdError: ``reference`` names no video.
            PlayabilityError: Every client reported the video unplayable.
            NoPlayableFormatsError: Nothing resolvable came back.
        """
        video_id = self._parse_id(reference)
        script_url, sts = await self._script_context()

        responses, errors = await self._query_clients(video_id, sts)
        if not responses:
            playability = [e for e in errors.values() if isinstance(e, PlayabilityError)]
            if playability and len(playability) == len(errors):
                raise playability[0]
            raise NoPlayableFormatsError(video_id, errors)

        descriptors = [
            FormatDescriptor.from_raw(raw, client=client.name)
            for client, response in responses
            for raw in raw_formats(response)
        ]
        await self._functions.decipher_formats(descriptors, script_url)

        merged = merge_formats(descriptors)
        if not merged:
            raise NoPlayableFormatsError(video_id, errors)

        formats = self._sort([self._enrich(fmt) for fmt in merged])
        if self._po_token:
            for fmt in formats:
                fmt.url = with_po_token(fmt.url or "", self._po_token)

        details = responses[0][1].get("videoDetails") or {}
        info = VideoInfo(
            video_id=video_id,
            formats=formats,
            title=details.get("title"),
            author=details.get("author"),
            length_seconds=int(details["lengthSeconds"])
            if str(details.get("lengthSeconds", "")).isdigit()
            else None,
            is_live=bool(details.get("isLive")),
            player_script_url=script_url,
            signature_timestamp=sts,
            clients=[client.name for client, _ in responses],
            client_errors={name: str(err) for name, err in errors.items()},
            video_details=details,
        )
        log.info(
            "video_info_ready",
            video_id=video_id,
            formats=len(formats),
            clients=info.clients,
            failed_clients=list(errors),
        )
        return info
