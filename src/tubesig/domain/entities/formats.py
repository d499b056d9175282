"""Domain entities for playable formats and video metadata.

Pure value objects - no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

# Raw API keys mapped onto dedicated fields; everything else lands in ``extra``.
_FIELD_KEYS: dict[str, str] = {
    "itag": "itag",
    "mimeType": "mime_type",
    "bitrate": "bitrate",
    "averageBitrate": "average_bitrate",
    "url": "url",
    "s": "s",
    "sp": "sp",
    "width": "width",
    "height": "height",
    "fps": "fps",
    "quality": "quality",
    "qualityLabel": "quality_label",
    "audioQuality": "audio_quality",
    "audioBitrate": "audio_bitrate",
    "audioSampleRate": "audio_sample_rate",
    "audioChannels": "audio_channels",
    "contentLength": "content_length",
    "approxDurationMs": "approx_duration_ms",
}
_INT_FIELDS = {
    "itag",
    "bitrate",
    "average_bitrate",
    "width",
    "height",
    "fps",
    "audio_bitrate",
    "audio_sample_rate",
    "audio_channels",
    "content_length",
    "approx_duration_ms",
}


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ResolutionState(str, Enum):
    """Lifecycle of a descriptor's URL."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class FormatDescriptor:
    """One playable variant of a video.

    Produced from the metadata API.  Only the URL resolver mutates it, and
    only once: ``PENDING`` moves to ``RESOLVED`` or ``FAILED`` and stays.
    """

    itag: int
    mime_type: str = ""
    bitrate: int | None = None
    average_bitrate: int | None = None
    url: str | None = None
    signature_cipher: str | None = None
    s: str | None = None
    sp: str | None = None

    width: int | None = None
    height: int | None = None
    fps: int | None = None
    quality: str | None = None
    quality_label: str | None = None
    audio_quality: str | None = None
    audio_bitrate: int | None = None
    audio_sample_rate: int | None = None
    audio_channels: int | None = None
    content_length: int | None = None
    approx_duration_ms: int | None = None

    # Derived metadata (see infrastructure.formats.metadata)
    has_video: bool = False
    has_audio: bool = False
    container: str | None = None
    codecs: str | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    is_live: bool = False
    is_hls: bool = False
    is_dash_mpd: bool = False

    client: str | None = None
    state: ResolutionState = ResolutionState.PENDING
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(
        cls, raw: Mapping[str, Any], *, client: str | None = None
    ) -> FormatDescriptor:
        """Build a descriptor from one ``streamingData`` format object."""
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            name = _FIELD_KEYS.get(key)
            if name is None:
                if key not in ("signatureCipher", "cipher"):
                    extra[key] = value
                continue
            values[name] = _as_int(value) if name in _INT_FIELDS else value

        cipher = raw.get("signatureCipher") or raw.get("cipher")
        return cls(
            itag=values.pop("itag", None) or 0,
            signature_cipher=cipher or None,
            client=client,
            extra=extra,
            **values,
        )

    @property
    def needs_resolution(self) -> bool:
        return self.state is ResolutionState.PENDING

    @property
    def is_playable(self) -> bool:
        return self.state is ResolutionState.RESOLVED and bool(self.url)

    def mark_resolved(self, url: str) -> None:
        self._transition(ResolutionState.RESOLVED)
        self.url = url
        self.signature_cipher = None
        self.s = None
        self.sp = None

    def mark_failed(self) -> None:
        self._transition(ResolutionState.FAILED)

    def _transition(self, target: ResolutionState) -> None:
        if self.state is not ResolutionState.PENDING:
            raise ValueError(
                f"format {self.itag} already {self.state.value}, cannot become {target.value}"
            )
        self.state = target

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the API's camelCase shape plus derived fields."""
        out: dict[str, Any] = dict(self.extra)
        for key, name in _FIELD_KEYS.items():
            value = getattr(self, name)
            if value is not None:
                out[key] = value
        if self.signature_cipher:
            out["signatureCipher"] = self.signature_cipher
        out.update(
            {
                "hasVideo": self.has_video,
                "hasAudio": self.has_audio,
                "container": self.container,
                "codecs": self.codecs,
                "videoCodec": self.video_codec,
                "audioCodec": self.audio_codec,
                "isLive": self.is_live,
                "isHLS": self.is_hls,
                "isDashMPD": self.is_dash_mpd,
                "client": self.client,
                "state": self.state.value,
            }
        )
        return out


@dataclass
class VideoInfo:
    """Result of one metadata fetch: video details plus resolved formats."""

    video_id: str
    formats: list[FormatDescriptor] = field(default_factory=list)
    title: str | None = None
    author: str | None = None
    length_seconds: int | None = None
    is_live: bool = False
    player_script_url: str | None = None
    signature_timestamp: int | None = None
    clients: list[str] = field(default_factory=list)
    client_errors: dict[str, str] = field(default_factory=dict)
    video_details: dict[str, Any] = field(default_factory=dict)

    @property
    def best_format(self) -> FormatDescriptor | None:
        """Audio+video first, then video-only, then audio-only, then anything."""
        if not self.formats:
            return None
        for predicate in (
            lambda f: f.has_video and f.has_audio,
            lambda f: f.has_video,
            lambda f: f.has_audio,
        ):
            for fmt in self.formats:
                if predicate(fmt):
                    return fmt
        return self.formats[0]

    def to_dict(self) -> dict[str, Any]:
        best = self.best_format
        return {
            "videoId": self.video_id,
            "title": self.title,
            "author": self.author,
            "lengthSeconds": self.length_seconds,
            "isLive": self.is_live,
            "playerScriptUrl": self.player_script_url,
            "signatureTimestamp": self.signature_timestamp,
            "clients": list(self.clients),
            "clientErrors": dict(self.client_errors),
            "bestFormat": best.itag if best else None,
            "formats": [f.to_dict() for f in self.formats],
        }
