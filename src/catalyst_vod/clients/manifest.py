"""HLS manifest download, segment URL rebasing and output manifest generation."""
from __future__ import annotations

import logging
import math
import os
import posixpath
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import m3u8

from ..exceptions import ManifestError, StorageError
from ..video import RenditionStats
from .storage import ObjectStorage, join_url

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME = "index.m3u8"


@dataclass(frozen=True)
class SourceSegment:
    url: str
    duration_millis: int
    index: int


def rendition_segment_name(index: int) -> str:
    return f"{index}.ts"


def rendition_manifest_location(output_dir: str, rendition_name: str) -> str:
    return join_url(output_dir, rendition_name, MANIFEST_NAME)


def download_rendition_manifest(
    manifest_url: str,
    *,
    storage: Optional[ObjectStorage] = None,
) -> m3u8.M3U8:
    """Fetch and parse a media playlist, rejecting master playlists."""

    storage = storage or ObjectStorage()
    try:
        raw = storage.download(manifest_url)
    except StorageError as exc:
        raise ManifestError(f"error downloading manifest: {exc}") from exc

    text = raw.decode("utf-8", errors="replace")
    if not text.lstrip("\ufeff \t\r\n").startswith("#EXTM3U"):
        raise ManifestError("error decoding manifest: missing #EXTM3U header")
    try:
        playlist = m3u8.loads(text, uri=manifest_url)
    except Exception as exc:
        raise ManifestError(f"error decoding manifest: {exc}") from exc
    if playlist.is_variant:
        raise ManifestError("only Media playlists are supported")
    return playlist


def manifest_url_to_segment_url(manifest_url: str, segment_uri: str) -> str:
    """Resolve ``segment_uri`` relative to the directory holding ``manifest_url``.

    Scheme URLs keep their scheme, credentials and host; only the path tail
    is replaced. Absolute references are returned unchanged.
    """

    reference = urlsplit(segment_uri)
    if reference.scheme or segment_uri.startswith("/"):
        return segment_uri

    split = urlsplit(manifest_url)
    if split.scheme and (split.netloc or split.scheme == "file"):
        directory = posixpath.dirname(split.path) or "/"
        path = posixpath.normpath(posixpath.join(directory, reference.path))
        return urlunsplit((split.scheme, split.netloc, path, reference.query, ""))
    return os.path.normpath(os.path.join(os.path.dirname(manifest_url), segment_uri))


def get_source_segment_urls(manifest_url: str, playlist: m3u8.M3U8) -> list[SourceSegment]:
    segments: list[SourceSegment] = []
    for index, segment in enumerate(playlist.segments):
        if not segment.uri:
            raise ManifestError(f"segment {index} of {manifest_url} has no URI")
        segments.append(
            SourceSegment(
                url=manifest_url_to_segment_url(manifest_url, segment.uri),
                duration_millis=int(round((segment.duration or 0.0) * 1000)),
                index=index,
            )
        )
    return segments


def render_rendition_manifest(source_playlist: m3u8.M3U8) -> str:
    """Copy the source segment list with references to rendition-local files."""

    durations = [float(segment.duration or 0.0) for segment in source_playlist.segments]
    target = source_playlist.target_duration
    if not target:
        target = int(math.ceil(max(durations))) if durations else 0
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        "#EXT-X-PLAYLIST-TYPE:VOD",
        "#EXT-X-MEDIA-SEQUENCE:0",
        f"#EXT-X-TARGETDURATION:{int(target)}",
    ]
    for index, duration in enumerate(durations):
        lines.append(f"#EXTINF:{duration:.3f},")
        lines.append(rendition_segment_name(index))
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


def render_master_manifest(stats: Sequence[RenditionStats]) -> str:
    """Build the master playlist, highest bandwidth first.

    ``sorted`` is stable, so equal bandwidths keep their input order, and
    ``NAME`` carries each rendition's input position.
    """

    indexed = list(enumerate(stats))
    ordered = sorted(indexed, key=lambda item: item[1].bits_per_second, reverse=True)
    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for original_index, rendition in ordered:
        lines.append(
            "#EXT-X-STREAM-INF:PROGRAM-ID=0,"
            f"BANDWIDTH={int(rendition.bits_per_second)},"
            f"RESOLUTION={int(rendition.width)}x{int(rendition.height)},"
            f'NAME="{original_index}-{rendition.name}",'
            f"FRAME-RATE={float(rendition.fps):.3f}"
        )
        lines.append(f"{rendition.name}/{MANIFEST_NAME}")
    return "\n".join(lines) + "\n"


def generate_manifests(
    source_playlist: m3u8.M3U8,
    output_dir: str,
    stats: Sequence[RenditionStats],
    *,
    storage: Optional[ObjectStorage] = None,
) -> str:
    """Write one manifest per rendition plus the master; return the master location."""

    storage = storage or ObjectStorage()
    rendition_body = render_rendition_manifest(source_playlist).encode("utf-8")
    try:
        for rendition in stats:
            storage.upload(
                output_dir,
                f"{rendition.name}/{MANIFEST_NAME}",
                rendition_body,
            )
        master = storage.upload(
            output_dir,
            MANIFEST_NAME,
            render_master_manifest(stats).encode("utf-8"),
        )
    except StorageError as exc:
        raise ManifestError(f"error writing manifests: {exc}") from exc
    LOGGER.info("Wrote master manifest for %d renditions to %s", len(stats), output_dir)
    return master


__all__ = [
    "MANIFEST_NAME",
    "SourceSegment",
    "download_rendition_manifest",
    "generate_manifests",
    "get_source_segment_urls",
    "manifest_url_to_segment_url",
    "render_master_manifest",
    "render_rendition_manifest",
    "rendition_manifest_location",
    "rendition_segment_name",
]
