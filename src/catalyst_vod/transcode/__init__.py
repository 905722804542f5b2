"""Segment-by-segment transcode runs for segmented VOD sources."""
from __future__ import annotations

from .process import TranscodeProcess, TranscodeSegmentRequest, input_video_from_stream_info

__all__ = ["TranscodeProcess", "TranscodeSegmentRequest", "input_video_from_stream_info"]
