"""Derived format metadata: media kinds, container, codecs, stream type."""

from __future__ import annotations

import re

from tubesig.domain.entities.formats import FormatDescriptor

_LIVE = re.compile(r"\bsource[/=]yt_live_broadcast\b")
_HLS_URL = re.compile(r"/manifest/hls_(variant|playlist)/")
_DASH_URL = re.compile(r"/manifest/dash/")
_HLS_MIME_MARKERS = ("hls", "x-mpegURL", "application/vnd.apple.mpegurl")


def _between(text: str, left: str, right: str) -> str | None:
    start = text.find(left)
    if start < 0:
        return None
    start += len(left)
    end = text.find(right, start)
    if end < 0:
        return None
    return text[start:end]


def estimate_audio_bitrate(fmt: FormatDescriptor) -> int:
    """kbps guess for audio formats the API reports without ``audioBitrate``."""
    if fmt.audio_bitrate:
        return fmt.audio_bitrate
    medium = fmt.quality == "medium"
    if fmt.audio_codec:
        codec = fmt.audio_codec.lower()
        if "opus" in codec:
            return 160 if medium else 128
        if "aac" in codec or "mp4a" in codec:
            return 128 if medium else 96
        if "vorbis" in codec:
            return 192 if medium else 128
        if "mp3" in codec:
            return 128
    if fmt.container == "webm":
        return 128
    if fmt.container == "mp4":
        return 96
    return 64


def add_format_meta(fmt: FormatDescriptor) -> FormatDescriptor:
    """Fill the derived fields of ``fmt`` in place and return it."""
    mime = fmt.mime_type or ""
    media_type = mime.split(";")[0].strip()

    fmt.has_video = bool(fmt.quality_label) or media_type.startswith("video/")
    fmt.has_audio = bool(fmt.audio_bitrate or fmt.audio_quality or fmt.audio_sample_rate)
    fmt.container = media_type.split("/")[1] if "/" in media_type else None
    fmt.codecs = _between(mime, 'codecs="', '"')

    codecs = [c.strip() for c in fmt.codecs.split(",")] if fmt.codecs else []
    fmt.video_codec = codecs[0] if fmt.has_video and codecs else None
    fmt.audio_codec = codecs[-1] if fmt.has_audio and codecs else None

    url = fmt.url or ""
    fmt.is_live = bool(_LIVE.search(url))
    fmt.is_hls = bool(_HLS_URL.search(url)) or any(m in mime for m in _HLS_MIME_MARKERS)
    fmt.is_dash_mpd = bool(_DASH_URL.search(url))

    if fmt.has_audio and not fmt.audio_bitrate:
        fmt.audio_bitrate = estimate_audio_bitrate(fmt)
    return fmt
