"""Source and output video descriptions reported through status callbacks."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

TRACK_TYPE_VIDEO = "video"
TRACK_TYPE_AUDIO = "audio"


@dataclass(frozen=True)
class InputTrack:
    """One track of the source media as reported by the media server."""

    type: str
    codec: str
    bitrate: int = 0
    duration_sec: float = 0.0
    start_time_sec: float = 0.0
    width: int = 0
    height: int = 0
    fps: float = 0.0
    channels: int = 0
    sample_rate: int = 0
    sample_bits: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "codec": self.codec,
            "bitrate": self.bitrate,
            "duration": self.duration_sec,
            "start_time": self.start_time_sec,
        }
        if self.type == TRACK_TYPE_VIDEO:
            payload.update({"width": self.width, "height": self.height, "fps": self.fps})
        elif self.type == TRACK_TYPE_AUDIO:
            payload.update(
                {
                    "channels": self.channels,
                    "sample_rate": self.sample_rate,
                    "sample_bits": self.sample_bits,
                }
            )
        return payload


@dataclass(frozen=True)
class InputVideo:
    """Reconstructed description of the uploaded source file."""

    format: str
    duration: float
    size_bytes: int
    tracks: tuple[InputTrack, ...] = ()

    def track(self, track_type: str) -> Optional[InputTrack]:
        for candidate in self.tracks:
            if candidate.type == track_type:
                return candidate
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "duration": self.duration,
            "size": self.size_bytes,
            "tracks": [track.to_dict() for track in self.tracks],
        }


@dataclass(frozen=True)
class OutputVideoFile:
    type: str
    location: str
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "location": self.location, "size": self.size_bytes}


@dataclass(frozen=True)
class OutputVideo:
    """Where the transcoded renditions of one run were written."""

    type: str
    manifest: str
    videos: tuple[OutputVideoFile, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "manifest": self.manifest,
            "videos": [video.to_dict() for video in self.videos],
        }


__all__ = [
    "TRACK_TYPE_AUDIO",
    "TRACK_TYPE_VIDEO",
    "InputTrack",
    "InputVideo",
    "OutputVideo",
    "OutputVideoFile",
]
