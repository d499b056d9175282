"""Balanced-brace scanning over minified JavaScript.

Regexes cannot find the end of a function body reliably, so bodies are
cut out by counting braces while skipping string literals, regex
literals and comments.
"""

from __future__ import annotations

import re

# Upper bound on how far a single function body may extend.
MAX_FUNCTION_SPAN = 50_000
_REGEX_PRECEDERS = set(",=([!&|;:{+-*/%^~?")


def _skip_string(text: str, i: int) -> int:
    quote = text[i]
    i += 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        i += 1
        if ch == quote:
            break
    return i


def _starts_regex_literal(text: str, i: int) -> bool:
    if i == 0:
        return False
    before = text[max(0, i - 6) : i].rstrip()
    if not before:
        return False
    return before[-1] in _REGEX_PRECEDERS or before.endswith("return")


def _skip_regex_literal(text: str, i: int) -> int:
    i += 1
    in_class = False
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            return i + 1
        elif ch == "\n":
            return i
        i += 1
    return i


def balanced_end(text: str, start: int, *, limit: int = MAX_FUNCTION_SPAN) -> int | None:
    """Index just past the brace that closes the first ``{`` at/after ``start``."""
    depth = 0
    opened = False
    i = start
    stop = min(len(text), start + limit)
    while i < stop:
        ch = text[i]
        if ch in "\"'`":
            i = _skip_string(text, i)
            continue
        if ch == "/":
            nxt = text[i + 1] if i + 1 < len(text) else ""
            if nxt == "/":
                newline = text.find("\n", i)
                i = len(text) if newline < 0 else newline
                continue
            if nxt == "*":
                close = text.find("*/", i + 2)
                i = len(text) if close < 0 else close + 2
                continue
            if _starts_regex_literal(text, i):
                i = _skip_regex_literal(text, i)
                continue
        if ch == "{":
            depth += 1
            opened = True
        elif ch == "}":
            depth -= 1
            if opened and depth == 0:
                return i + 1
        i += 1
    return None


def find_function_source(text: str, name: str) -> str | None:
    """Return ``name=function(...){...}`` as declared somewhere in ``text``."""
    declaration = re.compile(
        rf"(?:^|[;\n,{{])\s*(?:var\s+|let\s+|const\s+)?(?P<name>{re.escape(name)})\s*=\s*function\s*\("
    )
    for match in declaration.finditer(text):
        start = match.start("name")
        end = balanced_end(text, match.end())
        if end is not None:
            return text[start:end]
    named = re.search(rf"function\s+{re.escape(name)}\s*\(", text)
    if named:
        end = balanced_end(text, named.end())
        if end is not None:
            params = text[named.end() - 1 : end]
            return f"{name}=function{params}"
    return None


def find_object_source(text: str, name: str) -> str | None:
    """Return ``name={...}`` for an object literal assigned to ``name``."""
    declaration = re.compile(
        rf"(?:^|[;\n,{{])\s*(?:var\s+)?(?P<name>{re.escape(name)})\s*=\s*\{{"
    )
    for match in declaration.finditer(text):
        end = balanced_end(text, match.end() - 1)
        if end is not None:
            return text[match.start("name") : end]
    return None


def find_lookup_array(text: str, name: str = "K") -> str | None:
    """Return ``var NAME=<string>.split(<sep>)`` up to its closing paren."""
    marker = f"var {name}="
    start = text.find(marker)
    if start < 0:
        return None
    in_string = False
    quote = ""
    depth = 0
    seen_split = False
    i = start + len(marker)
    stop = min(len(text), start + 10_000)
    while i < stop:
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                in_string = False
        elif ch in "\"'":
            in_string = True
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if seen_split and depth == 0:
                return text[start : i + 1]
        elif ch == "." and text.startswith("split", i + 1):
            seen_split = True
        i += 1
    return None
