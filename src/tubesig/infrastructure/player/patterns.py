"""Regex catalogue for locating descrambling code in player scripts.

Shapes are grouped by family.  Each family describes one historical way
the player's minifier laid out the signature function, its helper
object or the n transform.  Order of use is decided by extractor.py.
"""

from __future__ import annotations

import re

IDENT = r"[a-zA-Z_$][a-zA-Z_0-9$]*"
_IDENT_DEFINE = rf"\"?{IDENT}\"?"
_ACCESS = rf"(?:\[\"|\.){IDENT}(?:\"\]|)"

# --- Helper object members (classic shape) ---------------------------------

REVERSE_PART = r":function\(\w\)\{(?:return )?\w\.reverse\(\)\}"
SLICE_PART = r":function\(\w,\w\)\{return \w\.slice\(\w\)\}"
SPLICE_PART = r":function\(\w,\w\)\{\w\.splice\(0,\w\)\}"
SWAP_PART = (
    r":function\(\w,\w\)\{"
    r"var \w=\w\[0\];\w\[0\]=\w\[\w%\w\.length\];\w\[\w(?:%\w.length|)\]=\w(?:;return \w)?\}"
)

HELPER_OBJECT = re.compile(
    rf"var (?P<name>{IDENT})=\{{(?P<body>(?:(?:"
    rf"{_IDENT_DEFINE}{REVERSE_PART}|"
    rf"{_IDENT_DEFINE}{SLICE_PART}|"
    rf"{_IDENT_DEFINE}{SPLICE_PART}|"
    rf"{_IDENT_DEFINE}{SWAP_PART}"
    r"),?\n?)+)\};",
    re.DOTALL,
)

_MEMBER_PREFIX = rf"(?:^|,)\"?(?P<key>{IDENT})\"?"
HELPER_MEMBERS: dict[str, re.Pattern[str]] = {
    "reverse": re.compile(_MEMBER_PREFIX + REVERSE_PART, re.MULTILINE),
    "slice": re.compile(_MEMBER_PREFIX + SLICE_PART, re.MULTILINE),
    "splice": re.compile(_MEMBER_PREFIX + SPLICE_PART, re.MULTILINE),
    "swap": re.compile(_MEMBER_PREFIX + SWAP_PART, re.MULTILINE),
}

# --- Signature function ----------------------------------------------------

DECIPHER_FUNCTION = re.compile(
    rf"function(?: {IDENT})?\((?P<arg>[a-zA-Z])\)\{{"
    r"(?P=arg)=(?P=arg)\.split\(\"\"\);\s*"
    rf"(?P<ops>(?:(?:(?P=arg)=)?{IDENT}{_ACCESS}\((?P=arg),\d+\);)+)"
    r"return (?P=arg)\.join\(\"\"\)"
    r"\}",
    re.DOTALL,
)

DECIPHER_FUNCTION_TCE = re.compile(
    r"function(?:\s+[a-zA-Z_$][a-zA-Z0-9_$]*)?\(\w\)\{"
    r"\w=\w\.split\((?:\"\"|[a-zA-Z0-9_$]*\[\d+\])\);"
    r"\s*(?P<ops>(?:(?:\w=)?[a-zA-Z_$][a-zA-Z0-9_$]*(?:\[\"|\.)[a-zA-Z_$][a-zA-Z0-9_$]*(?:\"\]|)\(\w,\d+\);)+)"
    r"return \w\.join\((?:\"\"|[a-zA-Z0-9_$]*\[\d+\])\)\}",
    re.DOTALL,
)

# Signature function indexing through a global lookup array.
TCE_SIGN_FUNCTION = re.compile(
    r"function\(\s*(?P<arg>[a-zA-Z0-9$])\s*\)\s*\{"
    r"\s*(?P=arg)\s*=\s*(?P=arg)\[(?P<tce>\w+)\[\d+\]\]\((?P=tce)\[\d+\]\);"
    r"(?P<helper>[a-zA-Z0-9$]+)\[(?P=tce)\[\d+\]\]\(\s*(?P=arg)\s*,\s*\d+\s*\);"
    r"\s*(?P=helper)\[(?P=tce)\[\d+\]\]\(\s*(?P=arg)\s*,\s*\d+\s*\);"
    r".*?return\s*(?P=arg)\[(?P=tce)\[\d+\]\]\((?P=tce)\[\d+\]\)\};",
    re.DOTALL,
)

_OBJ_MEMBER = (
    r"[$A-Za-z0-9_]+\s*:\s*function\s*\([^)]*\)\s*\{[^{}]*(?:\{[^{}]*}[^{}]*)*}"
)
TCE_SIGN_ACTIONS = re.compile(
    rf"var\s+(?P<name>[$A-Za-z0-9_]+)\s*=\s*\{{\s*{_OBJ_MEMBER}"
    rf"\s*,\s*{_OBJ_MEMBER}\s*,\s*{_OBJ_MEMBER}\s*}};",
    re.DOTALL,
)

# Callers that reference the signature function by name.
DECIPHER_CALLERS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?P<var>[a-zA-Z0-9_$]+)&&\((?P=var)=(?P<name>[a-zA-Z0-9_$]{2,})"
        r"\(decodeURIComponent\((?P=var)\)\)"
    ),
    re.compile(
        r"(?P<name>[a-zA-Z0-9_$]+)\s*=\s*function\(\s*(?P<arg>[a-zA-Z0-9_$]+)\s*\)\s*"
        r"\{\s*(?P=arg)\s*=\s*(?P=arg)\.split\(\s*\"\"\s*\)\s*;\s*[^}]+;\s*"
        r"return\s+(?P=arg)\.join\(\s*\"\"\s*\)"
    ),
    re.compile(
        r"(?:\b|[^a-zA-Z0-9_$])(?P<name>[a-zA-Z0-9_$]{2,})\s*=\s*function\(\s*a\s*\)\s*"
        r"\{\s*a\s*=\s*a\.split\(\s*\"\"\s*\)"
    ),
    re.compile(
        r"\b[cs]\s*&&\s*[adf]\.set\([^,]+\s*,\s*encodeURIComponent\s*\(\s*(?P<name>[a-zA-Z0-9$]+)\("
    ),
    re.compile(r"\bm=(?P<name>[a-zA-Z0-9$]{2,})\(decodeURIComponent\(h\.s\)\)"),
    re.compile(r"(\"|')signature\1\s*,\s*(?P<name>[a-zA-Z0-9$]+)\("),
    re.compile(r"\.sig\|\|(?P<name>[a-zA-Z0-9$]+)\("),
)

# --- n transform -----------------------------------------------------------

N_TRANSFORM_FUNCTION = re.compile(
    r"function\(\s*(\w+)\s*\)\s*\{"
    r"var\s*(\w+)=(?:\1\.split\(.*?\)|String\.prototype\.split\.call\(\1,.*?\)),"
    r"\s*(\w+)=(\[.*?]);\s*\3\[\d+]"
    r"(.*?try)(\{.*?})catch\(\s*(\w+)\s*\)\s*\{"
    r"\s*return\"[\w-]+([A-z0-9-]+)\"\s*\+\s*\1\s*}"
    r"\s*return\s*(\2\.join\(\"\"\)|Array\.prototype\.join\.call\(\2,.*?\))};",
    re.DOTALL,
)

N_TRANSFORM_FUNCTION_TCE = re.compile(
    r"function\(\s*(\w+)\s*\)\s*\{"
    r"\s*var\s*(\w+)=\1\.split\(\1\.slice\(0,0\)\),\s*(\w+)=\[.*?];"
    r".*?catch\(\s*(\w+)\s*\)\s*\{"
    r"\s*return(?:\"[^\"]+\"|\s*[a-zA-Z_0-9$]*\[\d+\])\s*\+\s*\1\s*}"
    r"\s*return\s*\2\.join\((?:\"\"|[a-zA-Z_0-9$]*\[\d+\])\)};",
    re.DOTALL,
)

TCE_N_FUNCTION = re.compile(
    r"function\s*\((\w+)\)\s*\{var\s*\w+\s*=\s*\1\[\w+\[\d+\]\]\(\w+\[\d+\]\)\s*,"
    r"\s*\w+\s*=\s*\[.*?\];.*?catch\s*\(\s*(\w+)\s*\)\s*\{return\s*\w+\[\d+\]\s*\+\s*\1\}"
    r"\s*return\s*\w+\[\w+\[\d+\]\]\(\w+\[\d+\]\)\}\s*;",
    re.DOTALL,
)

# Callers that reference the n function, directly or through a one-element array.
N_CALLERS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"""(?x)
        (?:
            \.get\("n"\)\)&&\(b=|
            (?:
                b=String\.fromCharCode\(110\)|
                (?P<str_idx>[a-zA-Z0-9_$.]+)&&\(b="nn"\[\+(?P=str_idx)\]
            )
            (?:
                ,[a-zA-Z0-9_$]+\(a\))?,c=a\.
                (?:
                    get\(b\)|
                    [a-zA-Z0-9_$]+\[b\]\|\|null
                )\)&&\(c=|
            \b(?P<var>[a-zA-Z0-9_$]+)=
        )(?P<name>[a-zA-Z0-9_$]+)(?:\[(?P<idx>\d+)\])?\([a-zA-Z]\)
        (?(var),[a-zA-Z0-9_$]+\.set\((?:"n+"|[a-zA-Z0-9_$]+)\,(?P=var)\))"""
    ),
    re.compile(r"var\s*[a-zA-Z0-9$_]{3}\s*=\s*\[(?P<name>[a-zA-Z0-9$_]{3})\]"),
)

N_DEBUG_MARKER_FUNCTION = re.compile(
    r"""(?xs)
    ;\s*(?P<name>[a-zA-Z0-9_$]+)\s*=\s*function\([a-zA-Z0-9_$]+\)
    \s*\{(?:(?!};).)+?return\s*(?P<q>["'])[\w-]+_w8_(?P=q)\s*\+\s*[a-zA-Z0-9_$]+"""
)

# Scaffolding that builds the base64url alphabet one char code at a time.
BASE64URL_SCAFFOLD: tuple[re.Pattern[str], ...] = (
    re.compile(r"case\s*58\s*:\s*\w+\s*=\s*96\s*;\s*continue"),
    re.compile(r"case\s*91\s*:\s*\w+\s*=\s*44\s*;\s*break"),
    re.compile(r"String\.fromCharCode\(\w+\)"),
)
BASE64URL_ALPHABET = re.compile(
    r"[\"']ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_[\"']"
)

FUNCTION_PARAM = re.compile(r"function\s*\(\s*(?P<arg>\w+)\s*\)")

# --- Global lookup arrays --------------------------------------------------

_STR = r"(?:\"[^\"\\]*(?:\\.[^\"\\]*)*\"|'[^'\\]*(?:\\.[^'\\]*)*')"

TCE_GLOBAL_VAR = re.compile(
    r"('use\s*strict';)?"
    r"(?P<code>var\s*"
    r"(?P<name>[a-zA-Z0-9_$]+)\s*=\s*"
    r"(?P<value>"
    rf"{_STR}\.split\({_STR}\)"
    r"|"
    rf"\[(?:{_STR}\s*,?\s*)*\]"
    r"|"
    r"\"[^\"]*\"\.split\(\"[^\"]*\"\)"
    r"))",
    re.MULTILINE,
)

LEGACY_GLOBAL_VAR = re.compile(
    r"(?:^|[;,])\s*(?P<code>var\s+(?P<name>[\w$]+)\s*=\s*"
    r"(?P<value>"
    r"(?P<q1>[\"'])(?:\\.|[^\\])*?(?P=q1)"
    r"\s*\.\s*split\((?P<q2>[\"'])(?:\\.|[^\\])*?(?P=q2)\)"
    r"|"
    r"\[\s*(?:(?P<q3>[\"'])(?:\\.|[^\\])*?(?P=q3)\s*,?\s*)+\]"
    r"))(?=\s*[,;])",
    re.MULTILINE,
)

# --- Guards ----------------------------------------------------------------


def short_circuit_guard(lookup_name: str | None) -> re.Pattern[str]:
    """``;if(typeof x==="undefined")return a;`` including the lookup-array form."""
    alternatives = [r"\"undefined\"", r"'undefined'"]
    if lookup_name:
        alternatives.append(rf"{re.escape(lookup_name)}\[\d+\]")
    return re.compile(
        r";\s*if\s*\(\s*typeof\s+[a-zA-Z0-9_$]+\s*===?\s*"
        rf"(?:{'|'.join(alternatives)})"
        r"\s*\)\s*return\s+\w+;"
    )


def legacy_guard(param: str) -> re.Pattern[str]:
    """Older ``if(typeof X===...)return param;`` form, removed outright."""
    return re.compile(
        rf"if\s*\(typeof\s*[^\s()]+\s*===?.*?\)return {re.escape(param)}\s*;?"
    )


DISPATCH_GUARD = re.compile(
    r"if\s*\(\s*typeof\s+\w+\s*===?\s*(?:K\[\d+\]|\"undefined\"|'undefined')\s*\)"
    r"\s*\{[^}]*break\s+\w+[^}]*\}"
)

# --- Dispatch tables -------------------------------------------------------

DISPATCH_N_SETTER = re.compile(
    r"(?P<array>[\w$]+)\[0\]\((?P<arg>[\w$]+)\)\s*,\s*[\w$]+\[(?:[\w$]+\[\d+\]|\"set\")\]"
    r"\((?:[\w$]+\[\d+\]|\"n\")"
)
DISPATCH_DELEGATE = re.compile(
    r"return\s+(?P<name>[\w$]+)\[(?:[\w$]+\[\d+\]|\"call\")\]\(this\s*,\s*(?P<selector>\d+)\s*,\s*[\w$]+\)"
)
DISPATCH_DELEGATE_ANY = re.compile(
    r"return\s+(?P<name>[\w$]+)\[(?:[\w$]+\[\d+\]|\"call\")\]\(this"
)
DISPATCH_SELECTOR_ARRAY = re.compile(r"\[[-\d]+,.*?\];", re.DOTALL)
IDENTIFIER_TOKEN = re.compile(r"(?<![a-zA-Z0-9_$])(?P<name>[a-zA-Z_$][a-zA-Z0-9_$]*)(?![a-zA-Z0-9_$])")
DISPATCH_HELPER_OBJECT = re.compile(
    r"(?P<name>[\w$]+)=\{(?:[\w$]+:function\(\w,?\w?\)\{[^}]+\}[,\n]*){2,4}\}"
)

# --- Script location -------------------------------------------------------

SCRIPT_URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<script\s+src=\"(?P<url>[^\"]+)\"[^>]*\sname=\"player_ias/base\""),
    re.compile(r"\"jsUrl\"\s*:\s*\"(?P<url>[^\"]+)\""),
    re.compile(r"\"PLAYER_JS_URL\"\s*:\s*\"(?P<url>[^\"]+)\""),
    re.compile(r"<script\s+src=\"(?P<url>[^\"]*/player_ias\.vflset/[^\"]+/base\.js)\""),
)

SIGNATURE_TIMESTAMP = re.compile(r"(?:signatureTimestamp|sts)\s*:\s*(?P<sts>\d+)")
