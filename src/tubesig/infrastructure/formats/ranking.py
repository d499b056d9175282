"""Format ranking and selection.

Formats are ordered by a fixed list of criteria, compared one after the
other, best first.  ``sorted`` is stable, so formats that tie on every
criterion keep their merge order.
"""

from __future__ import annotations

import re
from typing import Callable

from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.exceptions import FormatSelectionError

# Later entries rank higher.
AUDIO_ENCODING_RANKS = ("mp4a", "mp3", "vorbis", "aac", "opus", "flac")
VIDEO_ENCODING_RANKS = (
    "mp4v",
    "avc1",
    "Sorenson H.283",
    "MPEG-4 Visual",
    "VP8",
    "VP9",
    "H.264",
)

QUALITY_CHOICES = ("highest", "lowest", "highestaudio", "highestvideo")
FILTER_CHOICES = ("video", "videoonly", "audio", "audioonly", "audioandvideo")

_LEADING_INT = re.compile(r"^\s*(\d+)")


def quality_height(fmt: FormatDescriptor) -> int:
    """``"1080p60"`` -> 1080; 0 when unknown."""
    match = _LEADING_INT.match(fmt.quality_label or "")
    return int(match.group(1)) if match else 0


def _encoding_rank(codecs: str | None, ranks: tuple[str, ...]) -> int:
    if not codecs:
        return -1
    for index in range(len(ranks) - 1, -1, -1):
        if ranks[index] in codecs:
            return index
    return -1


def video_encoding_rank(fmt: FormatDescriptor) -> int:
    return _encoding_rank(fmt.codecs, VIDEO_ENCODING_RANKS)


def audio_encoding_rank(fmt: FormatDescriptor) -> int:
    return _encoding_rank(fmt.codecs, AUDIO_ENCODING_RANKS)


def overall_key(fmt: FormatDescriptor) -> tuple[int, ...]:
    return (
        int(fmt.is_hls),
        int(fmt.is_dash_mpd),
        int((fmt.content_length or 0) > 0),
        int(fmt.has_video and fmt.has_audio),
        int(fmt.has_video),
        quality_height(fmt),
        fmt.bitrate or 0,
        fmt.audio_bitrate or 0,
        video_encoding_rank(fmt),
        audio_encoding_rank(fmt),
    )


def video_key(fmt: FormatDescriptor) -> tuple[int, ...]:
    return (quality_height(fmt), fmt.bitrate or 0, video_encoding_rank(fmt))


def audio_key(fmt: FormatDescriptor) -> tuple[int, ...]:
    return (fmt.audio_bitrate or 0, audio_encoding_rank(fmt))


def sort_formats(
    formats: list[FormatDescriptor],
    key: Callable[[FormatDescriptor], tuple[int, ...]] = overall_key,
) -> list[FormatDescriptor]:
    """Best first; returns a new list."""
    return sorted(formats, key=key, reverse=True)


_FILTERS: dict[str, Callable[[FormatDescriptor], bool]] = {
    "video": lambda f: f.has_video,
    "videoonly": lambda f: f.has_video and not f.has_audio,
    "audio": lambda f: f.has_audio,
    "audioonly": lambda f: f.has_audio and not f.has_video,
    "audioandvideo": lambda f: f.has_video and f.has_audio,
}


def filter_formats(formats: list[FormatDescriptor], kind: str) -> list[FormatDescriptor]:
    try:
        predicate = _FILTERS[kind]
    except KeyError:
        raise FormatSelectionError(f"unknown format filter {kind!r}") from None
    return [f for f in formats if f.url and predicate(f)]


def choose_format(
    formats: list[FormatDescriptor],
    quality: str | int = "highest",
    *,
    filter: str | None = None,
) -> FormatDescriptor:
    """Pick one format from a list already sorted best first.

    ``quality`` is ``highest``, ``lowest``, ``highestaudio``,
    ``highestvideo``, or an itag (int or digit string).

    Raises:
        FormatSelectionError: Nothing matches.
    """
    candidates = filter_formats(formats, filter) if filter else [f for f in formats if f.url]

    if isinstance(quality, int) or str(quality).isdigit():
        itag = int(quality)
        for fmt in candidates:
            if fmt.itag == itag:
                return fmt
        raise FormatSelectionError(f"no format with itag {itag}")

    if quality not in QUALITY_CHOICES:
        raise FormatSelectionError(f"unknown quality {quality!r}")

    if quality == "highestaudio":
        candidates = sort_formats(filter_formats(candidates, "audio"), audio_key)
        if candidates:
            # Among equally good audio, prefer the smallest video part.
            best = audio_key(candidates[0])
            tied = [f for f in candidates if audio_key(f) == best]
            return min(tied, key=quality_height)
    elif quality == "highestvideo":
        candidates = sort_formats(filter_formats(candidates, "video"), video_key)
        if candidates:
            best = video_key(candidates[0])
            tied = [f for f in candidates if video_key(f) == best]
            return min(tied, key=lambda f: f.audio_bitrate or 0)
    elif candidates:
        return candidates[0] if quality == "highest" else candidates[-1]

    raise FormatSelectionError(f"no format matches quality {quality!r}")
