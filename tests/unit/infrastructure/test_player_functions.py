"""Tests for the per-script program memo and the failure dumper."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import respx
from helpers import PLAYER_JS, SCRIPT_URL, SEED_PAGE, SEED_URL, FakeClock

from tubesig.domain.entities.player import ExtractionResult, PlayerScript, Snippet, TransformKind
from tubesig.infrastructure.player.functions import PlayerFunctions, ScriptDumper
from tubesig.infrastructure.player.script_fetcher import PlayerScriptFetcher


def _make_functions(
    clock: FakeClock, *, ttl_seconds: float = 60, dumper: ScriptDumper | None = None
) -> PlayerFunctions:
    fetcher = PlayerScriptFetcher(
        httpx.AsyncClient(), seed_url=SEED_URL, ttl_seconds=ttl_seconds, clock=clock
    )
    return PlayerFunctions(fetcher, dumper=dumper)


class TestGetFunctions:
    @pytest.mark.asyncio()
    async def test_programs_work(self, clock: FakeClock, respx_mock: respx.MockRouter) -> None:
        respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        functions = _make_functions(clock)

        decipher, n_transform = await functions.get_functions(SCRIPT_URL)

        assert decipher is not None and n_transform is not None
        assert decipher.run("abcdefgh") == "cdeba"
        assert n_transform.run("abcdef") == "fedcba"

    @pytest.mark.asyncio()
    async def test_concurrent_callers_share_fetch_and_build(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        functions = _make_functions(clock)

        results = await asyncio.gather(
            *(functions.get_function_set(SCRIPT_URL) for _ in range(8))
        )

        assert route.call_count == 1
        assert functions.build_count == 1
        assert all(r is results[0] for r in results)
        assert results[0].signature_timestamp == 20123

    @pytest.mark.asyncio()
    async def test_rebuilt_after_script_expires(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        functions = _make_functions(clock, ttl_seconds=60)

        first = await functions.get_function_set(SCRIPT_URL)
        clock.advance(30)
        assert await functions.get_function_set(SCRIPT_URL) is first

        clock.advance(31)
        second = await functions.get_function_set(SCRIPT_URL)
        assert second is not first
        assert route.call_count == 2
        assert functions.build_count == 2

    @pytest.mark.asyncio()
    async def test_invalidate_forces_refetch(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        functions = _make_functions(clock)

        await functions.get_function_set(SCRIPT_URL)
        functions.invalidate(SCRIPT_URL)
        await functions.get_function_set(SCRIPT_URL)

        assert route.call_count == 2

    @pytest.mark.asyncio()
    async def test_script_without_programs(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text="var x=1;"))
        functions = _make_functions(clock)

        decipher, n_transform = await functions.get_functions(SCRIPT_URL)

        assert decipher is None
        assert n_transform is None

    @pytest.mark.asyncio()
    async def test_program_failing_trial_run_is_dropped(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        forwarded = Snippet(
            kind=TransformKind.N_TRANSFORM,
            declarations=("var TubesigNTransform=function(d){return Dp.call(this,7,d)};",),
            entry="TubesigNTransform",
        )
        functions = _make_functions(clock)

        with patch(
            "tubesig.infrastructure.player.functions.extract",
            return_value=ExtractionResult(n_transform=forwarded),
        ):
            decipher, n_transform = await functions.get_functions(SCRIPT_URL)

        assert decipher is None
        assert n_transform is None

    @pytest.mark.asyncio()
    async def test_locate_delegates_to_fetcher(
        self, clock: FakeClock, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get(SEED_URL).mock(return_value=httpx.Response(200, text=SEED_PAGE))
        functions = _make_functions(clock)
        assert await functions.locate_script_url() == SCRIPT_URL


class TestScriptDumper:
    @pytest.mark.asyncio()
    async def test_failed_extraction_dumped_once(
        self, clock: FakeClock, respx_mock: respx.MockRouter, tmp_path: Path
    ) -> None:
        respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text="var x=1;"))
        dumper = ScriptDumper(tmp_path / "dumps")
        functions = _make_functions(clock, dumper=dumper)

        await functions.get_functions(SCRIPT_URL)

        path = dumper.path_for(SCRIPT_URL)
        assert path.read_text(encoding="utf-8") == "var x=1;"
        assert await dumper.dump(PlayerScript(url=SCRIPT_URL, text="var x=1;"), "again") is None

    @pytest.mark.asyncio()
    async def test_complete_script_not_dumped(
        self, clock: FakeClock, respx_mock: respx.MockRouter, tmp_path: Path
    ) -> None:
        respx_mock.get(SCRIPT_URL).mock(return_value=httpx.Response(200, text=PLAYER_JS))
        dumper = ScriptDumper(tmp_path)
        functions = _make_functions(clock, dumper=dumper)

        await functions.get_functions(SCRIPT_URL)

        assert list(tmp_path.iterdir()) == []

    def test_path_is_stable(self, tmp_path: Path) -> None:
        dumper = ScriptDumper(tmp_path)
        assert dumper.path_for("https://a/base.js") == dumper.path_for("https://a/base.js")
        assert dumper.path_for("https://a/base.js") != dumper.path_for("https://b/base.js")
