"""Drive one transcode run: source manifest in, rendition manifests out."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..clients.broadcaster import LocalBroadcasterClient, RenditionSegment
from ..clients.manifest import (
    SourceSegment,
    download_rendition_manifest,
    generate_manifests,
    get_source_segment_urls,
    rendition_manifest_location,
    rendition_segment_name,
)
from ..clients.mist import MistStreamInfo
from ..clients.storage import ObjectStorage
from ..exceptions import CatalystError
from ..utils import random_trailer
from ..video import (
    EncodedProfile,
    InputTrack,
    InputVideo,
    OutputVideo,
    OutputVideoFile,
    RenditionStats,
    get_playback_profiles,
)

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class TranscodeSegmentRequest:
    source_file: str
    callback_url: str
    upload_url: str
    source_stream_info: MistStreamInfo
    access_token: str = ""
    transcode_api_url: str = ""
    profiles: tuple[EncodedProfile, ...] = ()


def input_video_from_stream_info(
    info: MistStreamInfo,
    *,
    duration_ms: int,
    size_bytes: int,
) -> InputVideo:
    """Describe the source the way it is reported in the completed callback."""

    tracks = tuple(
        InputTrack(
            type=track.type,
            codec=track.codec,
            bitrate=track.bps * 8,
            duration_sec=(track.lastms - track.firstms) / 1000.0,
            start_time_sec=track.firstms / 1000.0,
            width=track.width,
            height=track.height,
            fps=track.fpks / 1000.0,
            channels=track.channels,
            sample_rate=track.rate,
            sample_bits=track.size,
        )
        for track in info.tracks
    )
    # The segmented stream is DTSC; callers know it as the uploaded mp4.
    return InputVideo(
        format="mp4",
        duration=duration_ms / 1000.0,
        size_bytes=size_bytes,
        tracks=tracks,
    )


class TranscodeProcess:
    """Fan source segments out to the broadcaster and assemble the outputs."""

    def __init__(
        self,
        broadcaster: LocalBroadcasterClient,
        storage: ObjectStorage,
        *,
        parallel_jobs: int = 2,
    ) -> None:
        self._broadcaster = broadcaster
        self._storage = storage
        self._parallel_jobs = max(1, int(parallel_jobs))

    def run(
        self,
        request: TranscodeSegmentRequest,
        stream_name: str,
        duration_ms: int,
        report_progress: Optional[ProgressCallback] = None,
    ) -> list[OutputVideo]:
        source_video = input_video_from_stream_info(
            request.source_stream_info, duration_ms=duration_ms, size_bytes=0
        )
        profiles = list(request.profiles) or get_playback_profiles(source_video)
        source_manifest_url = self._storage.join(request.upload_url, "source", "index.m3u8")
        output_dir = self._storage.join(request.upload_url, "transcoded")

        playlist = download_rendition_manifest(source_manifest_url, storage=self._storage)
        segments = get_source_segment_urls(source_manifest_url, playlist)
        if not segments:
            raise CatalystError(f"source manifest {source_manifest_url} has no segments")

        manifest_id = f"manifest-{random_trailer()}"
        LOGGER.info(
            "Transcoding %d segments of %s (%d ms) with profiles %s",
            len(segments),
            stream_name,
            duration_ms,
            ", ".join(profile.name for profile in profiles),
        )

        video = source_video.track("video")
        source_fps = video.fps if video is not None else 0.0
        stats = {
            profile.name: RenditionStats(
                name=profile.name,
                width=profile.width,
                height=profile.height,
                fps=(profile.fps / (profile.fps_den or 1)) if profile.fps else source_fps,
            )
            for profile in profiles
        }

        with ThreadPoolExecutor(
            max_workers=self._parallel_jobs,
            thread_name_prefix=f"segments-{stream_name}",
        ) as executor:
            futures: list[Future] = [
                executor.submit(
                    self._transcode_segment, segment, profiles, manifest_id, output_dir
                )
                for segment in segments
            ]
            try:
                for position, (segment, future) in enumerate(zip(segments, futures), start=1):
                    for name, size in future.result():
                        rendition = stats[name]
                        rendition.bytes += size
                        rendition.duration_ms += segment.duration_millis
                    if report_progress is not None:
                        report_progress(position / len(segments))
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        ordered = [stats[profile.name] for profile in profiles]
        for rendition in ordered:
            rendition.finalize_bitrate()
        master = generate_manifests(playlist, output_dir, ordered, storage=self._storage)
        videos = tuple(
            OutputVideoFile(
                type="m3u8",
                location=rendition_manifest_location(output_dir, rendition.name),
                size_bytes=rendition.bytes,
            )
            for rendition in ordered
        )
        return [OutputVideo(type="object_store", manifest=master, videos=videos)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _transcode_segment(
        self,
        segment: SourceSegment,
        profiles: Sequence[EncodedProfile],
        manifest_id: str,
        output_dir: str,
    ) -> list[tuple[str, int]]:
        data = self._storage.download(segment.url)
        result = self._broadcaster.transcode_segment(
            data, segment.index, profiles, segment.duration_millis, manifest_id
        )
        known = {profile.name for profile in profiles}
        uploaded: list[tuple[str, int]] = []
        for rendition in result.renditions:
            if rendition.name not in known:
                raise CatalystError(
                    f"broadcaster returned unknown rendition {rendition.name!r} "
                    f"for segment {segment.index}"
                )
            payload = self._rendition_bytes(rendition)
            self._storage.upload(
                output_dir,
                f"{rendition.name}/{rendition_segment_name(segment.index)}",
                payload,
            )
            uploaded.append((rendition.name, len(payload)))
        return uploaded

    def _rendition_bytes(self, rendition: RenditionSegment) -> bytes:
        if rendition.media_data is not None:
            return rendition.media_data
        if rendition.media_url:
            return self._storage.download(rendition.media_url)
        raise CatalystError(f"rendition {rendition.name!r} carried neither data nor URL")


__all__ = ["TranscodeProcess", "TranscodeSegmentRequest", "input_video_from_stream_info"]
