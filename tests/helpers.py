"""Synthetic player scripts, fakes and factories shared by the tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.entities.player import TransformKind
from tubesig.domain.exceptions import TransformExecutionError

# ---------------------------------------------------------------------------
# Synthetic player script fragments
# ---------------------------------------------------------------------------

# Classic helper object plus split/ops/join signature function.
# "abcdefgh" -> reverse -> slice(3) -> swap(2) -> "cdeba"
HELPER_OBJECT_JS = (
    "var Xy={rv:function(a){a.reverse()},"
    "sl:function(a,b){return a.slice(b)},"
    "sw:function(a,b){var c=a[0];a[0]=a[b%a.length];a[b%a.length]=c}};"
)
DECIPHER_JS = (
    'var Nq=function(a){a=a.split("");Xy.rv(a,1);a=Xy.sl(a,3);Xy.sw(a,2);return a.join("")};'
)

# n transform referenced by its caller; reverses the value.
N_CALLER_JS = 'Vk=function(a){var b,c;(c=a.get("n"))&&(b=Hka(b),a.set("n",b))};'
N_FUNCTION_JS = 'var Hka=function(a){var b=a.split("");b.reverse();return b.join("")};'

PLAYER_JS = (
    "var yt={};"
    "var cfg={signatureTimestamp:20123};"
    f"{HELPER_OBJECT_JS}\n"
    f"{DECIPHER_JS}\n"
    f"{N_CALLER_JS}\n"
    f"{N_FUNCTION_JS}\n"
)

SCRIPT_PATH = "/s/player/0a1b2c3d/player_ias.vflset/en_US/base.js"
SCRIPT_URL = f"https://www.youtube.com{SCRIPT_PATH}"
SEED_URL = "https://www.youtube.com/embed/"
SEED_PAGE = (
    "<html><head><script>ytcfg.set({"
    f'"jsUrl":"{SCRIPT_PATH}","INNERTUBE_CONTEXT":{{}}}});'
    "</script></head><body></body></html>"
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeClock:
    """Controllable monotonic clock."""

    now: float = 1_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class ReverseProgram:
    """Transform program that reverses its input and counts calls."""

    kind: TransformKind = TransformKind.SIGNATURE
    calls: list[str] = field(default_factory=list)

    def run(self, value: str) -> str:
        self.calls.append(value)
        return value[::-1]


@dataclass
class FailingProgram:
    """Transform program that always throws."""

    kind: TransformKind = TransformKind.N_TRANSFORM
    calls: int = 0

    def run(self, value: str) -> str:
        self.calls += 1
        raise TransformExecutionError(self.kind, value, "boom")


def make_format(**overrides: Any) -> FormatDescriptor:
    """FormatDescriptor with sensible defaults."""
    defaults: dict[str, Any] = {
        "itag": 18,
        "mime_type": 'video/mp4; codecs="avc1.42001E, mp4a.40.2"',
        "url": "https://rr1---sn-abc.googlevideo.com/videoplayback?itag=18",
    }
    defaults.update(overrides)
    return FormatDescriptor(**defaults)


def make_resolved_format(**overrides: Any) -> FormatDescriptor:
    fmt = make_format(**overrides)
    fmt.mark_resolved(fmt.url or "")
    return fmt
