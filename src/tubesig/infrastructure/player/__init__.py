"""Player script infrastructure - fetch, extract and compile descramblers."""

from .extractor import extract
from .functions import PlayerFunctions, PlayerFunctionSet, ScriptDumper
from .sandbox import CompiledProgram, compile_snippet
from .script_fetcher import PlayerScriptFetcher

__all__ = [
    "CompiledProgram",
    "PlayerFunctionSet",
    "PlayerFunctions",
    "PlayerScriptFetcher",
    "ScriptDumper",
    "compile_snippet",
    "extract",
]
