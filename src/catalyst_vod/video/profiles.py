"""Rendition ladders used when a request does not specify its own profiles."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..exceptions import CatalystError
from .input import TRACK_TYPE_VIDEO, InputVideo

MIN_VIDEO_BITRATE = 100_000


@dataclass(frozen=True)
class EncodedProfile:
    """Target constraints for one output rendition."""

    name: str
    width: int
    height: int
    bitrate: int
    fps: int = 0
    fps_den: int = 0
    profile: str = ""
    gop: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "bitrate": self.bitrate,
            "fps": self.fps,
            "fpsDen": self.fps_den,
            "profile": self.profile,
            "gop": self.gop,
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "EncodedProfile":
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("profile name is required")
        try:
            return cls(
                name=name.strip(),
                width=int(payload.get("width") or 0),
                height=int(payload.get("height") or 0),
                bitrate=int(payload.get("bitrate") or 0),
                fps=int(payload.get("fps") or 0),
                fps_den=int(payload.get("fpsDen") or 0),
                profile=str(payload.get("profile") or ""),
                gop=str(payload.get("gop") or ""),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid profile {name!r}: {exc}") from exc


@dataclass
class RenditionStats:
    """Measured properties of one produced rendition.

    ``bytes`` and ``duration_ms`` accumulate while segments are transcoded;
    ``bits_per_second`` is derived from them once the run completes.
    """

    name: str
    width: int
    height: int
    fps: float = 0.0
    bits_per_second: int = 0
    bytes: int = 0
    duration_ms: float = 0.0

    def finalize_bitrate(self) -> None:
        if self.duration_ms > 0:
            self.bits_per_second = int(self.bytes * 8000.0 / self.duration_ms)


DEFAULT_TRANSCODE_PROFILES: tuple[EncodedProfile, ...] = (
    EncodedProfile(name="360p0", width=640, height=360, bitrate=1_000_000),
    EncodedProfile(name="720p0", width=1280, height=720, bitrate=4_000_000),
    EncodedProfile(name="1080p0", width=1920, height=1080, bitrate=5_000_000),
)


def _low_bitrate_profile(width: int, height: int, bitrate: int) -> EncodedProfile:
    target = bitrate // 2
    if target < MIN_VIDEO_BITRATE and bitrate > MIN_VIDEO_BITRATE:
        target = MIN_VIDEO_BITRATE
    return EncodedProfile(name="low-bitrate", width=width, height=height, bitrate=target)


def get_playback_profiles(input_video: InputVideo) -> list[EncodedProfile]:
    """Pick the ladder for ``input_video``, always ending with the source rendition."""

    video = input_video.track(TRACK_TYPE_VIDEO)
    if video is None:
        raise CatalystError("no video track found in input video")

    profiles = [
        profile
        for profile in DEFAULT_TRANSCODE_PROFILES
        if profile.height < video.height and profile.bitrate < video.bitrate
    ]
    if not profiles:
        profiles = [_low_bitrate_profile(video.width, video.height, video.bitrate)]
    profiles.append(
        EncodedProfile(
            name=f"{video.height}p0",
            width=video.width,
            height=video.height,
            bitrate=video.bitrate,
        )
    )
    return profiles


__all__ = [
    "DEFAULT_TRANSCODE_PROFILES",
    "MIN_VIDEO_BITRATE",
    "EncodedProfile",
    "RenditionStats",
    "get_playback_profiles",
]
