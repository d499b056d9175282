"""Pattern extractor - finds the descrambling functions in a player script.

For each snippet kind an ordered list of strategies is tried, first
success wins.  A strategy is a pure ``(text, lookup) -> Snippet | None``
function; one that raises is logged and skipped so the remaining
strategies still run.  A kind with no working strategy yields ``None``.

Signature strategies:
1. Lookup-array signature function plus its three-member action object.
2. Classic helper object plus a split/ops/join function (inline or
   lookup-array variant).
3. Name indirection: find the caller, then cut the named function and
   its helper object out by brace scanning.
4. Dispatch table rebuild (see dispatch.py).

n strategies:
1. Lookup-array n function with the short-circuit guard stripped.
2. Classic try/catch n function (inline or lookup-array variant).
3. Name indirection via the ``.get("n")`` / one-element-array callers.
4. Base64url alphabet scaffolding: locate the function that builds the
   alphabet and carries the ``catch`` fallback.
5. Dispatch table rebuild.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from tubesig.domain.entities.player import ExtractionResult, Snippet, TransformKind
from tubesig.infrastructure.player import patterns
from tubesig.infrastructure.player.dispatch import (
    DECIPHER_ENTRY,
    N_TRANSFORM_ENTRY,
    extract_dispatch_decipher,
    extract_dispatch_n_transform,
)
from tubesig.infrastructure.player.scanner import (
    balanced_end,
    find_function_source,
    find_object_source,
)

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GlobalLookup:
    """A global string array referenced by index from obfuscated code."""

    name: str
    code: str  # ``var NAME=...`` without a trailing semicolon


Strategy = Callable[[str, Optional[GlobalLookup]], Optional[Snippet]]


def find_global_lookup(text: str) -> GlobalLookup | None:
    match = patterns.TCE_GLOBAL_VAR.search(text)
    if match is None:
        return None
    return GlobalLookup(name=match.group("name"), code=match.group("code"))


def _legacy_lookup(text: str) -> str | None:
    match = patterns.LEGACY_GLOBAL_VAR.search(text)
    return f"{match.group('code')};" if match else None


def _declare(entry: str, function_literal: str) -> str:
    return f"var {entry}={function_literal.rstrip().rstrip(';')};"


def _function_literal(source: str) -> str:
    """``name=function(...){...}`` -> ``function(...){...}``."""
    return source.split("=", 1)[1].strip()


def _strip_short_circuit(code: str, lookup: GlobalLookup | None) -> str:
    guard = patterns.short_circuit_guard(lookup.name if lookup else None)
    return guard.sub(";", code)


def _strip_legacy_guard(code: str) -> str:
    param = patterns.FUNCTION_PARAM.search(code)
    if param is None:
        return code
    return patterns.legacy_guard(param.group("arg")).sub("", code)


# --- Signature strategies ---------------------------------------------------


def decipher_from_lookup_sign_function(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    if lookup is None:
        return None
    function = patterns.TCE_SIGN_FUNCTION.search(text)
    actions = patterns.TCE_SIGN_ACTIONS.search(text)
    if function is None or actions is None:
        return None
    return Snippet(
        kind=TransformKind.SIGNATURE,
        declarations=(
            f"{lookup.code};",
            actions.group(0),
            _declare(DECIPHER_ENTRY, function.group(0)),
        ),
        entry=DECIPHER_ENTRY,
    )


def decipher_from_helper_object(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    helper = patterns.HELPER_OBJECT.search(text)
    if helper is None:
        return None
    body = helper.group("body")
    if not any(p.search(body) for p in patterns.HELPER_MEMBERS.values()):
        return None

    declarations: list[str] = []
    function = patterns.DECIPHER_FUNCTION.search(text)
    if function is None:
        function = patterns.DECIPHER_FUNCTION_TCE.search(text)
        if function is None:
            return None
        legacy = _legacy_lookup(text)
        if legacy:
            declarations.append(legacy)

    declarations.append(helper.group(0))
    declarations.append(_declare(DECIPHER_ENTRY, function.group(0)))
    return Snippet(
        kind=TransformKind.SIGNATURE,
        declarations=tuple(declarations),
        entry=DECIPHER_ENTRY,
    )


_HELPER_REFERENCE = re.compile(r"[;{]\s*(?:\w+=)?(?P<helper>[a-zA-Z_$][\w$]*)(?:\.|\[)")


def decipher_from_caller_name(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    for caller in patterns.DECIPHER_CALLERS:
        match = caller.search(text)
        if match is None:
            continue
        name = match.group("name")
        source = find_function_source(text, name)
        if source is None:
            log.debug("decipher_caller_unresolved", name=name)
            continue

        declarations: list[str] = []
        if lookup is not None and lookup.name in source:
            declarations.append(f"{lookup.code};")
        param = patterns.FUNCTION_PARAM.search(source)
        arg = param.group("arg") if param else None
        for ref in _HELPER_REFERENCE.finditer(source):
            helper = ref.group("helper")
            if helper in (arg, name) or (lookup and helper == lookup.name):
                continue
            helper_source = find_object_source(text, helper)
            if helper_source:
                declarations.append(f"var {helper_source};")
                break
        declarations.append(_declare(DECIPHER_ENTRY, _function_literal(source)))
        return Snippet(
            kind=TransformKind.SIGNATURE,
            declarations=tuple(declarations),
            entry=DECIPHER_ENTRY,
        )
    return None


def decipher_from_dispatch(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    return extract_dispatch_decipher(text)


DECIPHER_STRATEGIES: tuple[Strategy, ...] = (
    decipher_from_lookup_sign_function,
    decipher_from_helper_object,
    decipher_from_caller_name,
    decipher_from_dispatch,
)


# --- n strategies -------------------------------------------------------------


def n_from_lookup_function(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    if lookup is None:
        return None
    match = patterns.TCE_N_FUNCTION.search(text)
    if match is None:
        return None
    code = _strip_short_circuit(match.group(0), lookup)
    return Snippet(
        kind=TransformKind.N_TRANSFORM,
        declarations=(f"{lookup.code};", _declare(N_TRANSFORM_ENTRY, code)),
        entry=N_TRANSFORM_ENTRY,
    )


def n_from_classic_function(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    declarations: list[str] = []
    match = patterns.N_TRANSFORM_FUNCTION.search(text)
    if match is None:
        match = patterns.N_TRANSFORM_FUNCTION_TCE.search(text)
        if match is None:
            return None
        legacy = _legacy_lookup(text)
        if legacy:
            declarations.append(legacy)
    code = _strip_legacy_guard(match.group(0))
    declarations.append(_declare(N_TRANSFORM_ENTRY, code))
    return Snippet(
        kind=TransformKind.N_TRANSFORM,
        declarations=tuple(declarations),
        entry=N_TRANSFORM_ENTRY,
    )


def _resolve_n_array(text: str, name: str, idx: str) -> str | None:
    match = re.search(rf"var {re.escape(name)}\s*=\s*(?P<items>\[.+?\])\s*[,;]", text)
    if match is None:
        return None
    items = [item.strip() for item in match.group("items")[1:-1].split(",")]
    position = int(idx)
    if position >= len(items):
        return None
    candidate = items[position]
    return candidate if re.fullmatch(r"[a-zA-Z_$][\w$]*", candidate) else None


def _n_snippet_from_source(source: str, lookup: GlobalLookup | None) -> Snippet:
    code = _strip_short_circuit(_function_literal(source), lookup)
    code = _strip_legacy_guard(code)
    declarations: list[str] = []
    if lookup is not None and lookup.name in code:
        declarations.append(f"{lookup.code};")
    declarations.append(_declare(N_TRANSFORM_ENTRY, code))
    return Snippet(
        kind=TransformKind.N_TRANSFORM,
        declarations=tuple(declarations),
        entry=N_TRANSFORM_ENTRY,
    )


def n_from_caller_name(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    candidates: list[str] = []
    for caller in patterns.N_CALLERS:
        match = caller.search(text)
        if match is None:
            continue
        name = match.group("name")
        idx = match.groupdict().get("idx")
        if idx:
            resolved = _resolve_n_array(text, name, idx)
            if resolved is None:
                continue
            name = resolved
        candidates.append(name)

    marker = patterns.N_DEBUG_MARKER_FUNCTION.search(text)
    if marker:
        candidates.append(marker.group("name"))

    for name in candidates:
        source = find_function_source(text, name)
        if source is not None:
            return _n_snippet_from_source(source, lookup)
        log.debug("n_caller_unresolved", name=name)
    return None


_FUNCTION_HEAD = re.compile(r"(?P<name>[a-zA-Z_$][\w$]*)\s*=\s*function\s*\(\s*\w+\s*\)\s*\{")


def n_from_alphabet_scaffold(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    anchors = [m.start() for m in patterns.BASE64URL_ALPHABET.finditer(text)]
    first = patterns.BASE64URL_SCAFFOLD[0].search(text)
    if first and patterns.BASE64URL_SCAFFOLD[1].search(text):
        anchors.append(first.start())
    if not anchors:
        return None

    for anchor in anchors:
        # The enclosing single-argument function is the closest head before
        # the anchor whose body extends past it.
        heads = [m for m in _FUNCTION_HEAD.finditer(text, max(0, anchor - 20_000), anchor)]
        for head in reversed(heads):
            end = balanced_end(text, head.end() - 1)
            if end is None or end <= anchor:
                continue
            source = text[head.start() : end]
            if "catch" not in source or not patterns.FUNCTION_PARAM.search(source):
                continue
            return _n_snippet_from_source(source, lookup)
    return None


def n_from_dispatch(text: str, lookup: GlobalLookup | None) -> Snippet | None:
    return extract_dispatch_n_transform(text)


N_STRATEGIES: tuple[Strategy, ...] = (
    n_from_lookup_function,
    n_from_classic_function,
    n_from_caller_name,
    n_from_alphabet_scaffold,
    n_from_dispatch,
)


# --- Driver ---------------------------------------------------------------------


def run_strategies(
    kind: TransformKind,
    strategies: tuple[Strategy, ...],
    text: str,
    lookup: GlobalLookup | None,
    *,
    script_url: str | None = None,
) -> Snippet | None:
    for strategy in strategies:
        try:
            snippet = strategy(text, lookup)
        except Exception as exc:
            log.debug(
                "extraction_strategy_failed",
                kind=kind.value,
                strategy=strategy.__name__,
                error=str(exc),
                script_url=script_url,
            )
            continue
        if snippet is not None:
            log.debug(
                "extraction_strategy_matched",
                kind=kind.value,
                strategy=strategy.__name__,
                script_url=script_url,
            )
            return snippet
    log.warning("extraction_failed", kind=kind.value, script_url=script_url)
    return None


def extract_signature_timestamp(text: str) -> int | None:
    match = patterns.SIGNATURE_TIMESTAMP.search(text)
    return int(match.group("sts")) if match else None


def extract(text: str, *, script_url: str | None = None) -> ExtractionResult:
    """Locate both descrambling snippets in ``text``.

    Deterministic: identical text always yields identical snippets.
    """
    try:
        lookup = find_global_lookup(text)
    except Exception as exc:
        log.debug("global_lookup_failed", error=str(exc), script_url=script_url)
        lookup = None

    return ExtractionResult(
        decipher=run_strategies(
            TransformKind.SIGNATURE, DECIPHER_STRATEGIES, text, lookup, script_url=script_url
        ),
        n_transform=run_strategies(
            TransformKind.N_TRANSFORM, N_STRATEGIES, text, lookup, script_url=script_url
        ),
        signature_timestamp=extract_signature_timestamp(text),
    )

