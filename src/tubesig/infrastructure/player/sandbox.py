"""Sandboxed evaluation of extracted snippets.

Snippets run on yt-dlp's pure-Python JavaScript interpreter.  The
interpreter only knows the snippet's own source text: there is no
module system, no I/O and no access to the surrounding player script.

Compilation validates the entry function and evaluates the snippet's
plain global values (lookup arrays, strings) once.  Every run then gets
a new interpreter instance and a deep copy of those globals, so nothing
a previous run mutated can leak into the next one.  Functions declared
beside the entry are bound into that same scope, so helpers called from
the entry read the same globals.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any

import structlog
from yt_dlp.jsinterp import JSInterpreter, LocalNameSpace

from tubesig.domain.entities.player import Snippet, TransformKind
from tubesig.domain.exceptions import TransformExecutionError

log = structlog.get_logger(__name__)

_DECLARATION = re.compile(
    r"^\s*var\s+(?P<name>[a-zA-Z_$][a-zA-Z0-9_$]*)\s*=\s*(?P<value>.*?)\s*;?\s*$",
    re.DOTALL,
)
_RECURSION_LIMIT = 100


def _is_plain_value(value: str) -> bool:
    """Strings, arrays and ``"...".split(...)`` expressions; not code."""
    if value.startswith(("function", "{")):
        return False
    return value.startswith(("[", '"', "'")) or value[:1].isdigit()


def _evaluate_globals(snippet: Snippet) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for declaration in snippet.declarations:
        match = _DECLARATION.match(declaration)
        if match is None or not _is_plain_value(match.group("value")):
            continue
        name, expr = match.group("name", "value")
        try:
            jsi = JSInterpreter(f"var {name}={expr};")
            values[name] = jsi.interpret_expression(
                expr, LocalNameSpace(), allow_recursion=_RECURSION_LIMIT
            )
        except Exception as exc:
            # Left unbound; the interpreter resolves it lazily or fails the run.
            log.debug("sandbox_global_skipped", name=name, error=str(exc))
    return values


def _function_names(snippet: Snippet, source: str) -> tuple[str, ...]:
    """Declared functions besides the entry that the interpreter can parse."""
    interpreter = JSInterpreter(source)
    names: list[str] = []
    for declaration in snippet.declarations:
        match = _DECLARATION.match(declaration)
        if match is None or not match.group("value").startswith("function"):
            continue
        name = match.group("name")
        if name == snippet.entry or name in names:
            continue
        try:
            interpreter.extract_function_code(name)
        except Exception as exc:
            log.debug("sandbox_function_skipped", name=name, error=str(exc))
            continue
        names.append(name)
    return tuple(names)


@dataclass(frozen=True)
class CompiledProgram:
    """A snippet ready to run, one string in and one string out."""

    snippet: Snippet
    source: str
    globals: dict[str, Any] = field(default_factory=dict)
    functions: tuple[str, ...] = ()

    @property
    def kind(self) -> TransformKind:
        return self.snippet.kind

    @property
    def entry(self) -> str:
        return self.snippet.entry

    def run(self, value: str) -> str:
        """Apply the program to ``value``.

        Raises:
            TransformExecutionError: The snippet threw, or returned
                something other than a string.
        """
        interpreter = JSInterpreter(self.source)
        scope = copy.deepcopy(self.globals)
        try:
            # Bound into the shared scope so nested calls see the globals.
            for name in self.functions:
                scope[name] = interpreter.extract_function(name, scope)
            function = interpreter.extract_function(self.entry, scope)
            result = function([value], allow_recursion=_RECURSION_LIMIT)
        except Exception as exc:
            raise TransformExecutionError(self.kind, value, str(exc) or type(exc).__name__) from exc
        if not isinstance(result, str):
            raise TransformExecutionError(
                self.kind, value, f"expected a string result, got {type(result).__name__}"
            )
        return result

    def __call__(self, value: str) -> str:
        return self.run(value)


def compile_snippet(snippet: Snippet, *, trial_input: str | None = None) -> CompiledProgram:
    """Parse a snippet once into a reusable program.

    With ``trial_input`` the program is also run once on that value and
    only returned if the run produces a string.

    Raises:
        TransformExecutionError: The entry function cannot be located in
            the snippet source, or the trial run failed.
    """
    source = snippet.source
    try:
        JSInterpreter(source).extract_function_code(snippet.entry)
    except Exception as exc:
        raise TransformExecutionError(
            snippet.kind, None, f"cannot compile entry {snippet.entry}: {exc}"
        ) from exc
    program = CompiledProgram(
        snippet=snippet,
        source=source,
        globals=_evaluate_globals(snippet),
        functions=_function_names(snippet, source),
    )
    if trial_input is not None:
        try:
            program.run(trial_input)
        except TransformExecutionError as exc:
            raise TransformExecutionError(
                snippet.kind, trial_input, f"trial run failed: {exc.reason}"
            ) from exc
    log.debug(
        "snippet_compiled",
        kind=snippet.kind.value,
        entry=snippet.entry,
        globals=sorted(program.globals),
        size=len(source),
        verified=trial_input is not None,
    )
    return program
