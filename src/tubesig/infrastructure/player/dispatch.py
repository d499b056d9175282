"""Extraction for dispatch-table obfuscated player scripts.

In these scripts logical operations are routed through shared dispatch
functions keyed by a numeric selector, and every string (method names
included) is read from a global lookup array ``K``.  The n transform is
rebuilt by collecting the entry wrapper, its dispatch function and the
wrappers that dispatch function references, with every
``Fn.call(this, ...)`` forward rewritten as a plain call.  The signature
function is rebuilt from the chain of helper calls, which only ever
splice, reverse or swap.
"""

from __future__ import annotations

import re

import structlog
from yt_dlp.jsinterp import JSInterpreter, LocalNameSpace

from tubesig.domain.entities.player import Snippet, TransformKind
from tubesig.infrastructure.player import patterns
from tubesig.infrastructure.player.scanner import (
    balanced_end,
    find_function_source,
    find_lookup_array,
)

log = structlog.get_logger(__name__)

DECIPHER_ENTRY = "TubesigDecipher"
N_TRANSFORM_ENTRY = "TubesigNTransform"

LOOKUP_ARRAY = "K"
MAX_EXPANSION_ROUNDS = 3
# Identifiers in dispatch bodies that are never wrapper functions.
_NOT_WRAPPERS = frozenset(
    {
        LOOKUP_ARRAY,
        "function",
        "return",
        "var",
        "typeof",
        "null",
        "undefined",
        "this",
        "Math",
        "String",
        "Object",
        "Error",
        "Number",
        "Array",
        "break",
        "case",
        "continue",
        "default",
        "switch",
        "new",
        "for",
        "while",
        "if",
        "else",
        "try",
        "catch",
        "throw",
        "true",
        "false",
        "void",
        "in",
        "instanceof",
        "call",
        "apply",
        "length",
    }
)

# Minimal globals so unreachable branches of the dispatch code do not throw.
DISPATCH_STUBS: tuple[str, ...] = (
    "var g={zV:function(){return},U:function(){return},GV:function(){return},"
    "lQ:function(m){this.message=m}};",
    'var xA0="";',
)
_CHAIN_GAP = 200
_HELPER_MEMBER = re.compile(
    r"(?P<key>[\w$]+):function\(\w,?\w?\)\{(?P<body>[^}]+)\}"
)


def evaluate_lookup_array(definition: str) -> list[str] | None:
    """Evaluate ``var K="...".split(";")`` without running anything else."""
    value = definition.split("=", 1)[1]
    result = JSInterpreter(definition).interpret_expression(
        value, LocalNameSpace(), allow_recursion=20
    )
    if isinstance(result, list) and all(isinstance(item, str) for item in result):
        return result
    return None


def _call_forwarding(table: list[str] | None) -> re.Pattern[str]:
    """Match ``X[K[i]](this,``, ``X["call"](this,`` and ``X.call(this,``."""
    members = [r"\.call", r"\[\"call\"\]"]
    if table:
        indexes = "|".join(str(i) for i, item in enumerate(table) if item == "call")
        if indexes:
            members.append(rf"\[{LOOKUP_ARRAY}\[(?:{indexes})\]\]")
    alternatives = "|".join(members)
    return re.compile(rf"(?P<name>[\w$]+)(?:{alternatives})\(this\s*,\s*")


def strip_call_forwarding(source: str, table: list[str] | None) -> str:
    """Turn ``Fn.call(this, ...)`` forms into direct ``Fn(...)`` calls."""
    return _call_forwarding(table).sub(r"\g<name>(", source)


def _selector_array_refs(dispatch_source: str) -> list[str]:
    match = patterns.DISPATCH_SELECTOR_ARRAY.search(dispatch_source)
    if match is None:
        return []
    refs: list[str] = []
    for token in patterns.IDENTIFIER_TOKEN.finditer(match.group(0)):
        name = token.group("name")
        if len(name) > 1 and name not in _NOT_WRAPPERS and name not in refs:
            refs.append(name)
    return refs


def _inner_refs(source: str) -> list[str]:
    refs: list[str] = []
    for token in patterns.IDENTIFIER_TOKEN.finditer(source):
        name = token.group("name")
        if len(name) > 2 and name not in _NOT_WRAPPERS and name not in refs:
            refs.append(name)
    return refs


def _collect_dispatch_functions(
    text: str, entry_name: str, entry_source: str, dispatch_name: str
) -> dict[str, str] | None:
    dispatch_source = find_function_source(text, dispatch_name)
    if dispatch_source is None:
        return None

    functions: dict[str, str] = {entry_name: entry_source, dispatch_name: dispatch_source}
    dispatchers = {dispatch_name}
    pending = _selector_array_refs(dispatch_source)

    for _ in range(MAX_EXPANSION_ROUNDS):
        if not pending:
            break
        batch, pending = pending, []
        for name in batch:
            if name in functions:
                continue
            source = find_function_source(text, name)
            if source is None:
                continue
            functions[name] = source
            delegate = patterns.DISPATCH_DELEGATE_ANY.search(source)
            if delegate is None:
                continue
            inner = delegate.group("name")
            if inner in functions or inner in dispatchers:
                continue
            dispatchers.add(inner)
            inner_source = find_function_source(text, inner)
            if inner_source is None:
                continue
            functions[inner] = inner_source
            pending.extend(r for r in _inner_refs(inner_source) if r not in functions)
    return functions


def _po_helper(text: str) -> str | None:
    start = text.find("po={")
    if start < 0:
        return None
    end = balanced_end(text, start, limit=500)
    if end is None:
        return None
    return f"var {text[start:end]};"


def extract_dispatch_n_transform(text: str) -> Snippet | None:
    """Rebuild the n transform from a dispatch-table player script."""
    lookup = find_lookup_array(text, LOOKUP_ARRAY)
    if lookup is None:
        return None

    setter = patterns.DISPATCH_N_SETTER.search(text)
    if setter is None:
        return None
    array_name = setter.group("array")
    array_def = re.search(rf"{re.escape(array_name)}\s*=\s*\[(?P<entry>[\w$]+)\]", text)
    if array_def is None:
        return None

    entry_name = array_def.group("entry")
    entry_source = find_function_source(text, entry_name)
    if entry_source is None:
        return None
    delegate = patterns.DISPATCH_DELEGATE.search(entry_source)
    if delegate is None:
        return None

    functions = _collect_dispatch_functions(
        text, entry_name, entry_source, delegate.group("name")
    )
    if functions is None:
        return None

    table = evaluate_lookup_array(lookup)

    def _prepare(source: str) -> str:
        return strip_call_forwarding(patterns.DISPATCH_GUARD.sub("", source), table)

    declarations: list[str] = [f"{lookup};", *DISPATCH_STUBS]
    po = _po_helper(text)
    if po:
        declarations.append(po)
    for source in functions.values():
        declarations.append(_prepare(f"var {source};"))
    entry_literal = _prepare(entry_source.split("=", 1)[1])
    declarations.append(f"var {N_TRANSFORM_ENTRY}={entry_literal};")

    log.debug(
        "dispatch_n_transform_rebuilt",
        entry=entry_name,
        functions=len(functions),
    )
    return Snippet(
        kind=TransformKind.N_TRANSFORM,
        declarations=tuple(declarations),
        entry=N_TRANSFORM_ENTRY,
    )


def _helper_operations(helper_source: str, splice_ref: str, reverse_ref: str) -> dict[str, str]:
    operations: dict[str, str] = {}
    for member in _HELPER_MEMBER.finditer(helper_source):
        body = member.group("body")
        if splice_ref in body:
            operations[member.group("key")] = "splice"
        elif reverse_ref in body:
            operations[member.group("key")] = "reverse"
        else:
            operations[member.group("key")] = "swap"
    return operations


def extract_dispatch_decipher(text: str) -> Snippet | None:
    """Rebuild the signature function from a dispatch-table player script."""
    lookup = find_lookup_array(text, LOOKUP_ARRAY)
    if lookup is None:
        return None
    table = evaluate_lookup_array(lookup)
    if not table or "splice" not in table or "reverse" not in table:
        return None
    splice_ref = f"{LOOKUP_ARRAY}[{table.index('splice')}]"
    reverse_ref = f"{LOOKUP_ARRAY}[{table.index('reverse')}]"

    helper_name = helper_source = None
    for match in patterns.DISPATCH_HELPER_OBJECT.finditer(text):
        if splice_ref in match.group(0) and reverse_ref in match.group(0):
            helper_name, helper_source = match.group("name"), match.group(0)
            break
    if helper_name is None or helper_source is None:
        return None

    chain = re.compile(
        rf"{re.escape(helper_name)}\[{LOOKUP_ARRAY}\[(?P<idx>\d+)\]\]\([\w$]+,(?P<arg>\d+)\)"
    )
    start = end = -1
    count = 0
    for call in chain.finditer(text):
        if start < 0 or call.start() - end > _CHAIN_GAP:
            start, count = call.start(), 1
        else:
            count += 1
        end = call.end()
        if count >= 2:
            break
    if count < 2:
        return None

    operations = _helper_operations(helper_source, splice_ref, reverse_ref)
    region = text[max(0, start - 100) : end + 50]
    steps: list[str] = []
    for call in chain.finditer(region):
        idx, arg = int(call.group("idx")), int(call.group("arg"))
        member = table[idx] if idx < len(table) else None
        operation = operations.get(member or "", "swap")
        if operation == "splice":
            steps.append(f"a.splice(0,{arg});")
        elif operation == "reverse":
            steps.append("a.reverse();")
        else:
            steps.append(f"var t=a[0];a[0]=a[{arg}%a.length];a[{arg}%a.length]=t;")
    if not steps:
        return None

    body = 'var a=sig.split("");' + "".join(steps) + 'return a.join("")'
    log.debug("dispatch_decipher_rebuilt", helper=helper_name, steps=len(steps))
    return Snippet(
        kind=TransformKind.SIGNATURE,
        declarations=(f"var {DECIPHER_ENTRY}=function(sig){{{body}}};",),
        entry=DECIPHER_ENTRY,
    )
