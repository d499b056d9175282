from .clients import ClientProfile
from .formats import FormatDescriptor, ResolutionState, VideoInfo
from .player import (
    DECIPHER_ARGUMENT,
    N_ARGUMENT,
    ExtractionResult,
    PlayerScript,
    Snippet,
    TransformKind,
)

__all__ = [
    "DECIPHER_ARGUMENT",
    "N_ARGUMENT",
    "ClientProfile",
    "ExtractionResult",
    "FormatDescriptor",
    "PlayerScript",
    "ResolutionState",
    "Snippet",
    "TransformKind",
    "VideoInfo",
]
