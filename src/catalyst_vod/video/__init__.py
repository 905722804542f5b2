"""Video profile ladders and track metadata models."""
from __future__ import annotations

from .input import InputTrack, InputVideo, OutputVideo, OutputVideoFile
from .profiles import (
    DEFAULT_TRANSCODE_PROFILES,
    EncodedProfile,
    RenditionStats,
    get_playback_profiles,
)

__all__ = [
    "DEFAULT_TRANSCODE_PROFILES",
    "EncodedProfile",
    "InputTrack",
    "InputVideo",
    "OutputVideo",
    "OutputVideoFile",
    "RenditionStats",
    "get_playback_profiles",
]
