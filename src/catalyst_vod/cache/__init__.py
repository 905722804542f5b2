"""In-process job state for the segmenting and transcoding phases."""
from __future__ import annotations

from .stream_cache import PushJob, SegmentingCache, StreamCache, StreamJob, TranscodingCache

__all__ = ["PushJob", "SegmentingCache", "StreamCache", "StreamJob", "TranscodingCache"]
