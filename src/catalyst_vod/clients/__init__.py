"""Clients for the external collaborators of the VOD pipeline."""
from __future__ import annotations

from .broadcaster import LocalBroadcasterClient, RenditionSegment, TranscodeResult
from .callback import CallbackClient, TranscodeStatus
from .manifest import (
    SourceSegment,
    download_rendition_manifest,
    generate_manifests,
    get_source_segment_urls,
    manifest_url_to_segment_url,
)
from .mist import MistClient, MistStreamInfo, MistTrack
from .storage import ObjectStorage

__all__ = [
    "CallbackClient",
    "LocalBroadcasterClient",
    "MistClient",
    "MistStreamInfo",
    "MistTrack",
    "ObjectStorage",
    "RenditionSegment",
    "SourceSegment",
    "TranscodeResult",
    "TranscodeStatus",
    "download_rendition_manifest",
    "generate_manifests",
    "get_source_segment_urls",
    "manifest_url_to_segment_url",
]
