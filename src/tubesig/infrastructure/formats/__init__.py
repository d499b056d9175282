"""Format metadata, ranking and selection."""

from .metadata import add_format_meta, estimate_audio_bitrate
from .ranking import (
    QUALITY_CHOICES,
    choose_format,
    filter_formats,
    overall_key,
    sort_formats,
)

__all__ = [
    "QUALITY_CHOICES",
    "add_format_meta",
    "choose_format",
    "estimate_audio_bitrate",
    "filter_formats",
    "overall_key",
    "sort_formats",
]
