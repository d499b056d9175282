"""Tests for derived format metadata, ranking and selection."""

from __future__ import annotations

import pytest
from helpers import make_resolved_format

from tubesig.domain.exceptions import FormatSelectionError
from tubesig.infrastructure.formats.metadata import add_format_meta, estimate_audio_bitrate
from tubesig.infrastructure.formats.ranking import (
    audio_encoding_rank,
    choose_format,
    filter_formats,
    quality_height,
    sort_formats,
    video_encoding_rank,
)


def _muxed(**kw):
    defaults = dict(
        itag=18,
        mime_type='video/mp4; codecs="avc1.42001E, mp4a.40.2"',
        quality_label="360p",
        audio_quality="AUDIO_QUALITY_LOW",
        audio_sample_rate=44100,
        bitrate=500_000,
        content_length=1000,
        url="https://rr1---sn-a.googlevideo.com/videoplayback?itag=18",
    )
    defaults.update(kw)
    return add_format_meta(make_resolved_format(**defaults))


def _video(**kw):
    defaults = dict(
        itag=137,
        mime_type='video/mp4; codecs="avc1.640028"',
        quality_label="1080p",
        bitrate=4_000_000,
        content_length=1000,
        url="https://rr1---sn-a.googlevideo.com/videoplayback?itag=137",
    )
    defaults.update(kw)
    return add_format_meta(make_resolved_format(**defaults))


def _audio(**kw):
    defaults = dict(
        itag=251,
        mime_type='audio/webm; codecs="opus"',
        audio_quality="AUDIO_QUALITY_MEDIUM",
        audio_sample_rate=48000,
        bitrate=130_000,
        content_length=1000,
        url="https://rr1---sn-a.googlevideo.com/videoplayback?itag=251",
    )
    defaults.update(kw)
    return add_format_meta(make_resolved_format(**defaults))


class TestAddFormatMeta:
    def test_muxed_format(self) -> None:
        fmt = _muxed()
        assert fmt.has_video and fmt.has_audio
        assert fmt.container == "mp4"
        assert fmt.codecs == "avc1.42001E, mp4a.40.2"
        assert fmt.video_codec == "avc1.42001E"
        assert fmt.audio_codec == "mp4a.40.2"
        assert fmt.audio_bitrate == 96

    def test_video_only(self) -> None:
        fmt = _video()
        assert fmt.has_video and not fmt.has_audio
        assert fmt.audio_codec is None
        assert fmt.audio_bitrate is None

    def test_audio_only_estimates_bitrate(self) -> None:
        fmt = _audio(quality="medium")
        assert fmt.has_audio and not fmt.has_video
        assert fmt.container == "webm"
        assert fmt.audio_codec == "opus"
        assert fmt.audio_bitrate == 160

    def test_reported_audio_bitrate_kept(self) -> None:
        assert _audio(audio_bitrate=64).audio_bitrate == 64

    def test_stream_kinds_from_url(self) -> None:
        live = _muxed(url="https://h/videoplayback?source=yt_live_broadcast")
        hls = _muxed(url="https://h/api/manifest/hls_variant/id/1")
        dash = _muxed(url="https://h/api/manifest/dash/id/1")
        assert live.is_live
        assert hls.is_hls
        assert dash.is_dash_mpd
        assert not live.is_hls

    def test_estimate_fallbacks(self) -> None:
        fmt = make_resolved_format(mime_type="audio/mp4")
        fmt.container = "mp4"
        assert estimate_audio_bitrate(fmt) == 96
        fmt.container = None
        assert estimate_audio_bitrate(fmt) == 64


class TestRanks:
    def test_quality_height(self) -> None:
        assert quality_height(_video(quality_label="1080p60")) == 1080
        assert quality_height(_audio()) == 0

    def test_encoding_ranks(self) -> None:
        assert video_encoding_rank(_video()) == 1
        assert video_encoding_rank(_video(mime_type='video/webm; codecs="vp9"')) == -1
        assert audio_encoding_rank(_audio()) == 4
        assert audio_encoding_rank(_muxed()) == 0


class TestSortFormats:
    def test_muxed_before_video_before_audio(self) -> None:
        audio, video, muxed = _audio(), _video(), _muxed()
        ordered = sort_formats([audio, video, muxed])
        assert [f.itag for f in ordered] == [18, 137, 251]

    def test_known_size_ranks_first(self) -> None:
        unknown = _muxed(itag=22, quality_label="720p", content_length=None)
        known = _muxed()
        assert sort_formats([unknown, known])[0] is known

    def test_higher_resolution_first(self) -> None:
        low = _video(itag=134, quality_label="360p")
        high = _video(itag=137, quality_label="1080p")
        assert sort_formats([low, high]) == [high, low]

    def test_stable_for_ties(self) -> None:
        a = _video(itag=1)
        b = _video(itag=2)
        assert [f.itag for f in sort_formats([a, b])] == [1, 2]
        assert [f.itag for f in sort_formats([b, a])] == [2, 1]


class TestChooseFormat:
    def _formats(self):
        return sort_formats(
            [
                _muxed(),
                _video(),
                _video(itag=136, quality_label="720p", bitrate=2_000_000),
                _audio(),
                _audio(itag=140, mime_type='audio/mp4; codecs="mp4a.40.2"', audio_bitrate=128),
            ]
        )

    def test_highest(self) -> None:
        assert choose_format(self._formats()).itag == 18

    def test_lowest(self) -> None:
        assert choose_format(self._formats(), "lowest").itag == self._formats()[-1].itag

    def test_highestvideo(self) -> None:
        assert choose_format(self._formats(), "highestvideo").itag == 137

    def test_highestaudio_prefers_no_video_on_tie(self) -> None:
        muxed = _muxed(mime_type='video/webm; codecs="vp9, opus"', audio_bitrate=160)
        formats = sort_formats([muxed, _audio(audio_bitrate=160)])
        assert choose_format(formats, "highestaudio").itag == 251

    def test_highestaudio(self) -> None:
        assert choose_format(self._formats(), "highestaudio").itag == 251

    def test_itag(self) -> None:
        assert choose_format(self._formats(), 136).itag == 136
        assert choose_format(self._formats(), "140").itag == 140

    def test_missing_itag(self) -> None:
        with pytest.raises(FormatSelectionError, match="itag 999"):
            choose_format(self._formats(), 999)

    def test_filter(self) -> None:
        assert choose_format(self._formats(), filter="audioonly").itag in (251, 140)
        assert choose_format(self._formats(), filter="videoonly").itag == 137

    def test_unknown_quality(self) -> None:
        with pytest.raises(FormatSelectionError, match="unknown quality"):
            choose_format(self._formats(), "best")

    def test_unknown_filter(self) -> None:
        with pytest.raises(FormatSelectionError, match="unknown format filter"):
            filter_formats(self._formats(), "subtitles")

    def test_nothing_matches(self) -> None:
        with pytest.raises(FormatSelectionError):
            choose_format([_video()], "highestaudio")
