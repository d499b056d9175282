"""Tests for VideoInfoUseCase (multi-client fetch, merge, PO token)."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from tubesig.application.use_cases.video_info import (
    VideoInfoUseCase,
    merge_formats,
    with_po_token,
)
from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.exceptions import (
    NoPlayableFormatsError,
    PlayabilityError,
    PlayerRequestError,
    ScriptLocationError,
)
from tubesig.infrastructure.innertube.clients import ANDROID_VR, IOS, TV

VIDEO_ID = "dQw4w9WgXcQ"
SCRIPT_URL = "https://www.youtube.com/s/player/0a1b2c3d/player_ias.vflset/en_US/base.js"
MEDIA = "https://rr1---sn-abc.googlevideo.com/videoplayback"


def _make_response(*formats: dict[str, Any], title: str = "Test") -> dict[str, Any]:
    return {
        "playabilityStatus": {"status": "OK"},
        "videoDetails": {
            "videoId": VIDEO_ID,
            "title": title,
            "author": "Someone",
            "lengthSeconds": "212",
        },
        "streamingData": {"adaptiveFormats": list(formats)},
    }


def _raw(itag: int, client_param: str, **extra: Any) -> dict[str, Any]:
    raw = {
        "itag": itag,
        "mimeType": 'video/mp4; codecs="avc1.640028"',
        "url": f"{MEDIA}?itag={itag}&c={client_param}",
    }
    raw.update(extra)
    return raw


class _FakeFunctions:
    """Resolves formats that carry a plain URL, fails the rest."""

    def __init__(self, *, locate_error: Exception | None = None) -> None:
        self.locate_error = locate_error
        self.batches: list[tuple[list[FormatDescriptor], str | None]] = []

    async def locate_script_url(self) -> str:
        if self.locate_error is not None:
            raise self.locate_error
        return SCRIPT_URL

    async def get_signature_timestamp(self, script_url: str) -> int | None:
        return 20123

    async def get_functions(self, script_url: str):
        return None, None

    async def decipher_formats(
        self, formats: list[FormatDescriptor], script_url: str | None
    ) -> dict[str, FormatDescriptor]:
        self.batches.append((formats, script_url))
        for fmt in formats:
            if fmt.url:
                fmt.mark_resolved(fmt.url)
            else:
                fmt.mark_failed()
        return {}


def _make_api(by_client: dict[str, Any]) -> MagicMock:
    def fetch(video_id: str, client, *, signature_timestamp=None):
        result = by_client[client.name]
        if isinstance(result, Exception):
            raise result
        return result

    api = MagicMock()
    api.fetch_player = AsyncMock(side_effect=fetch)
    return api


def _make_use_case(
    api: MagicMock,
    *,
    clients=(IOS, ANDROID_VR),
    functions: _FakeFunctions | None = None,
    po_token: str | None = None,
) -> VideoInfoUseCase:
    return VideoInfoUseCase(
        player_api=api,
        functions=functions or _FakeFunctions(),
        clients=clients,
        parse_id_fn=lambda ref: ref,
        enrich_fn=lambda fmt: fmt,
        sort_fn=list,
        po_token=po_token,
    )


class TestWithPoToken:
    def test_appends_token(self) -> None:
        url = with_po_token(f"{MEDIA}?itag=18", "TOKEN")
        assert url == f"{MEDIA}?itag=18&pot=TOKEN&potc=1"

    def test_replaces_existing(self) -> None:
        url = with_po_token(f"{MEDIA}?pot=old&itag=18&potc=0", "new")
        assert url == f"{MEDIA}?itag=18&pot=new&potc=1"


class TestMergeFormats:
    def _resolved(self, itag: int, client_param: str, **kw: Any) -> FormatDescriptor:
        fmt = FormatDescriptor.from_raw(_raw(itag, client_param, **kw), client=client_param)
        fmt.mark_resolved(fmt.url or "")
        return fmt

    def test_first_seen_wins(self) -> None:
        a, b = self._resolved(18, "IOS"), self._resolved(18, "TVHTML5")
        assert merge_formats([a, b]) == [a]

    def test_android_vr_replaces_earlier(self) -> None:
        a, b = self._resolved(18, "IOS"), self._resolved(18, "ANDROID_VR")
        assert merge_formats([a, b]) == [b]

    def test_android_vr_kept_over_later(self) -> None:
        a, b = self._resolved(18, "ANDROID_VR"), self._resolved(18, "IOS")
        assert merge_formats([a, b]) == [a]

    def test_drops_unplayable_and_mimeless(self) -> None:
        failed = FormatDescriptor.from_raw(_raw(22, "IOS"))
        failed.mark_failed()
        mimeless = self._resolved(140, "IOS", mimeType="")
        kept = self._resolved(18, "IOS")
        assert merge_formats([failed, mimeless, kept]) == [kept]


class TestVideoInfoUseCase:
    def test_requires_clients(self) -> None:
        with pytest.raises(ValueError, match="at least one client"):
            _make_use_case(MagicMock(), clients=())

    @pytest.mark.asyncio()
    async def test_merges_clients_and_prefers_android_vr(self) -> None:
        api = _make_api(
            {
                "IOS": _make_response(_raw(18, "IOS"), _raw(137, "IOS")),
                "ANDROID_VR": _make_response(_raw(18, "ANDROID_VR")),
            }
        )
        info = await _make_use_case(api).execute(VIDEO_ID)

        by_itag = {f.itag: f for f in info.formats}
        assert set(by_itag) == {18, 137}
        assert by_itag[18].client == "ANDROID_VR"
        assert "c=ANDROID_VR" in (by_itag[18].url or "")
        assert info.clients == ["IOS", "ANDROID_VR"]
        assert info.client_errors == {}

    @pytest.mark.asyncio()
    async def test_details_and_script_context(self) -> None:
        api = _make_api({"IOS": _make_response(_raw(18, "IOS")), "ANDROID_VR": _make_response()})
        info = await _make_use_case(api).execute(VIDEO_ID)

        assert info.video_id == VIDEO_ID
        assert info.title == "Test"
        assert info.author == "Someone"
        assert info.length_seconds == 212
        assert info.player_script_url == SCRIPT_URL
        assert info.signature_timestamp == 20123
        for call in api.fetch_player.await_args_list:
            assert call.kwargs["signature_timestamp"] == 20123

    @pytest.mark.asyncio()
    async def test_single_batch_for_all_clients(self) -> None:
        functions = _FakeFunctions()
        api = _make_api(
            {
                "IOS": _make_response(_raw(18, "IOS")),
                "ANDROID_VR": _make_response(_raw(140, "ANDROID_VR")),
            }
        )
        await _make_use_case(api, functions=functions).execute(VIDEO_ID)

        assert len(functions.batches) == 1
        batch, script_url = functions.batches[0]
        assert {f.itag for f in batch} == {18, 140}
        assert script_url == SCRIPT_URL

    @pytest.mark.asyncio()
    async def test_po_token_applied(self) -> None:
        api = _make_api({"IOS": _make_response(_raw(18, "IOS")), "ANDROID_VR": _make_response()})
        info = await _make_use_case(api, po_token="POT").execute(VIDEO_ID)
        assert info.formats[0].url.endswith("&pot=POT&potc=1")

    @pytest.mark.asyncio()
    async def test_partial_client_failure_recorded(self) -> None:
        api = _make_api(
            {
                "IOS": PlayerRequestError("HTTP 403", client="IOS", status_code=403),
                "ANDROID_VR": _make_response(_raw(18, "ANDROID_VR")),
            }
        )
        info = await _make_use_case(api).execute(VIDEO_ID)

        assert info.clients == ["ANDROID_VR"]
        assert info.client_errors == {"IOS": "HTTP 403"}

    @pytest.mark.asyncio()
    async def test_all_unplayable_raises_playability(self) -> None:
        api = _make_api(
            {
                "IOS": PlayabilityError("LOGIN_REQUIRED", "Sign in"),
                "ANDROID_VR": PlayabilityError("LOGIN_REQUIRED", "Sign in"),
            }
        )
        with pytest.raises(PlayabilityError, match="Sign in"):
            await _make_use_case(api).execute(VIDEO_ID)

    @pytest.mark.asyncio()
    async def test_mixed_failures_raise_no_formats(self) -> None:
        api = _make_api(
            {
                "IOS": PlayabilityError("UNPLAYABLE"),
                "ANDROID_VR": PlayerRequestError("request failed", client="ANDROID_VR"),
            }
        )
        with pytest.raises(NoPlayableFormatsError) as exc_info:
            await _make_use_case(api).execute(VIDEO_ID)
        assert set(exc_info.value.errors) == {"IOS", "ANDROID_VR"}

    @pytest.mark.asyncio()
    async def test_nothing_resolvable_raises_no_formats(self) -> None:
        cipher_only = {"itag": 18, "mimeType": "video/mp4", "signatureCipher": "s=x&url=y"}
        api = _make_api({"TV": _make_response(cipher_only)})
        with pytest.raises(NoPlayableFormatsError, match=VIDEO_ID):
            await _make_use_case(api, clients=(TV,)).execute(VIDEO_ID)

    @pytest.mark.asyncio()
    async def test_unexpected_error_propagates(self) -> None:
        api = _make_api({"IOS": RuntimeError("boom"), "ANDROID_VR": _make_response()})
        with pytest.raises(RuntimeError, match="boom"):
            await _make_use_case(api).execute(VIDEO_ID)

    @pytest.mark.asyncio()
    async def test_script_unavailable_degrades(self) -> None:
        functions = _FakeFunctions(locate_error=ScriptLocationError("seed down"))
        api = _make_api({"IOS": _make_response(_raw(18, "IOS")), "ANDROID_VR": _make_response()})

        info = await _make_use_case(api, functions=functions).execute(VIDEO_ID)

        assert info.player_script_url is None
        assert info.signature_timestamp is None
        assert api.fetch_player.await_args_list[0].kwargs["signature_timestamp"] is None
        assert functions.batches[0][1] is None
        assert [f.itag for f in info.formats] == [18]
