"""Compiled descrambling programs per player script URL.

Programs are derived from a cached PlayerScript and share its lifetime:
the memo entry expires at the same instant the script does, so both
are superseded together.  Concurrent requests for one script URL share a
single fetch + extract + compile.
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from pathlib import Path

import structlog

from tubesig.domain.entities.player import PlayerScript, Snippet, TransformKind
from tubesig.domain.exceptions import TransformExecutionError
from tubesig.infrastructure.cache.memo_cache import SingleFlightCache
from tubesig.infrastructure.player.extractor import extract
from tubesig.infrastructure.player.sandbox import CompiledProgram, compile_snippet
from tubesig.infrastructure.player.script_fetcher import PlayerScriptFetcher

log = structlog.get_logger(__name__)

# Every compiled program is run once on this before it is cached.
TRIAL_INPUT = "aBcDeFgHiJkLmNoPqRsTuVwXyZ0123456789-_"


@dataclass(frozen=True)
class PlayerFunctionSet:
    """Everything derived from one player script."""

    script_url: str
    decipher: CompiledProgram | None
    n_transform: CompiledProgram | None
    signature_timestamp: int | None = None


class ScriptDumper:
    """Writes the text of scripts that failed extraction, once per URL."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._dumped: set[str] = set()

    def path_for(self, script_url: str) -> Path:
        digest = hashlib.sha1(script_url.encode("utf-8")).hexdigest()[:12]
        return self.directory / f"player-script-{digest}.js"

    async def dump(self, script: PlayerScript, reason: str) -> Path | None:
        if script.url in self._dumped:
            return None
        self._dumped.add(script.url)
        path = self.path_for(script.url)
        try:
            await asyncio.to_thread(self._write, path, script.text)
        except OSError as exc:
            log.warning("player_script_dump_failed", script_url=script.url, error=str(exc))
            return None
        log.warning(
            "player_script_dumped",
            script_url=script.url,
            reason=reason,
            path=str(path),
        )
        return path

    @staticmethod
    def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _compile(snippet: Snippet | None, script_url: str) -> CompiledProgram | None:
    if snippet is None:
        return None
    try:
        return compile_snippet(snippet, trial_input=TRIAL_INPUT)
    except TransformExecutionError as exc:
        log.warning(
            "snippet_compile_failed",
            kind=snippet.kind.value,
            script_url=script_url,
            error=exc.reason,
        )
        return None


class PlayerFunctions:
    """``get_functions(script_url)`` memoized per script lifetime."""

    def __init__(
        self,
        fetcher: PlayerScriptFetcher,
        *,
        dumper: ScriptDumper | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._dumper = dumper
        self._memo: SingleFlightCache[PlayerFunctionSet] = SingleFlightCache(
            name="player_functions", clock=fetcher.clock
        )
        self.build_count = 0

    async def locate_script_url(self) -> str:
        return await self._fetcher.locate_script_url()

    async def get_function_set(self, script_url: str) -> PlayerFunctionSet:
        cached = self._memo.peek(script_url)
        if cached is not None:
            return cached
        script = await self._fetcher.get_script(script_url)
        remaining = script.ttl_seconds - (self._fetcher.clock() - script.fetched_at)
        return await self._memo.get_or_populate(
            script_url,
            lambda: self._build(script),
            ttl=max(remaining, 0.001),
        )

    async def get_functions(
        self, script_url: str
    ) -> tuple[CompiledProgram | None, CompiledProgram | None]:
        functions = await self.get_function_set(script_url)
        return functions.decipher, functions.n_transform

    async def _build(self, script: PlayerScript) -> PlayerFunctionSet:
        self.build_count += 1
        result = extract(script.text, script_url=script.url)
        functions = PlayerFunctionSet(
            script_url=script.url,
            decipher=_compile(result.decipher, script.url),
            n_transform=_compile(result.n_transform, script.url),
            signature_timestamp=result.signature_timestamp,
        )
        missing = [
            kind.value
            for kind, program in (
                (TransformKind.SIGNATURE, functions.decipher),
                (TransformKind.N_TRANSFORM, functions.n_transform),
            )
            if program is None
        ]
        if missing and self._dumper is not None:
            await self._dumper.dump(script, f"missing {', '.join(missing)} program")
        log.info(
            "player_functions_ready",
            script_url=script.url,
            decipher=functions.decipher is not None,
            n_transform=functions.n_transform is not None,
            signature_timestamp=functions.signature_timestamp,
        )
        return functions

    def invalidate(self, script_url: str) -> None:
        self._memo.invalidate(script_url)
        self._fetcher.invalidate(script_url)
