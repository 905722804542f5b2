"""Concurrency-safe bookkeeping of per-stream pipeline jobs.

Each phase keeps its own dictionary behind its own lock. Locks are only held
while the dictionary is read or written, never across network calls, and
callers always receive copies rather than the stored objects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from threading import Lock
from typing import Iterable

from ..exceptions import CacheMissError
from ..video import EncodedProfile

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamJob:
    """A source file being segmented by the media server."""

    stream_name: str
    callback_url: str
    source_file: str = ""
    access_token: str = ""
    transcode_api_url: str = ""
    upload_url: str = ""
    profiles: tuple[EncodedProfile, ...] = ()


@dataclass
class PushJob:
    """A stream being pushed to one or more transcode destinations."""

    stream_name: str
    callback_url: str
    source: str = ""
    destinations: list[str] = field(default_factory=list)

    def snapshot(self) -> "PushJob":
        return replace(self, destinations=list(self.destinations))


class SegmentingCache:
    """Jobs waiting for the media server to finish segmenting their source."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: dict[str, StreamJob] = {}

    def store(
        self,
        stream_name: str,
        callback_url: str,
        *,
        source_file: str = "",
        access_token: str = "",
        transcode_api_url: str = "",
        upload_url: str = "",
        profiles: Iterable[EncodedProfile] = (),
    ) -> StreamJob:
        job = StreamJob(
            stream_name=stream_name,
            callback_url=callback_url,
            source_file=source_file,
            access_token=access_token,
            transcode_api_url=transcode_api_url,
            upload_url=upload_url,
            profiles=tuple(profiles),
        )
        with self._lock:
            self._jobs[stream_name] = job
        return job

    def get(self, stream_name: str) -> StreamJob:
        with self._lock:
            job = self._jobs.get(stream_name)
        if job is None:
            raise CacheMissError(stream_name)
        return job

    def take(self, stream_name: str) -> StreamJob:
        """Remove and return the job in one step so only one caller can claim it."""

        with self._lock:
            job = self._jobs.pop(stream_name, None)
        if job is None:
            raise CacheMissError(stream_name)
        return job

    def get_callback_url(self, stream_name: str) -> str:
        return self.get(stream_name).callback_url

    def remove(self, stream_name: str) -> None:
        with self._lock:
            self._jobs.pop(stream_name, None)

    def __contains__(self, stream_name: object) -> bool:
        with self._lock:
            return stream_name in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class TranscodingCache:
    """Jobs whose source stream is being pushed to transcode destinations."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: dict[str, PushJob] = {}

    def store(self, stream_name: str, job: PushJob) -> None:
        stored = job.snapshot()
        with self._lock:
            self._jobs[stream_name] = stored

    def get(self, stream_name: str) -> PushJob:
        with self._lock:
            job = self._jobs.get(stream_name)
            snapshot = job.snapshot() if job is not None else None
        if snapshot is None:
            raise CacheMissError(stream_name)
        return snapshot

    def add_destination(self, stream_name: str, destination: str) -> None:
        with self._lock:
            job = self._jobs.get(stream_name)
            if job is not None and destination not in job.destinations:
                job.destinations.append(destination)
        if job is None:
            LOGGER.debug("Dropping destination %s for unknown stream %s", destination, stream_name)

    def remove_push_destination(self, stream_name: str, destination: str) -> bool:
        """Remove ``destination`` and report whether the job has none left.

        Returns ``False`` when the stream is unknown.
        """

        with self._lock:
            job = self._jobs.get(stream_name)
            if job is None:
                return False
            destinations = job.destinations
            for index, candidate in enumerate(destinations):
                if candidate == destination:
                    destinations[index] = destinations[-1]
                    destinations.pop()
                    break
            return not destinations

    def remove(self, stream_name: str) -> None:
        with self._lock:
            self._jobs.pop(stream_name, None)

    def __contains__(self, stream_name: object) -> bool:
        with self._lock:
            return stream_name in self._jobs


class StreamCache:
    """Both phase stores, constructed once per serving process."""

    def __init__(self) -> None:
        self.segmenting = SegmentingCache()
        self.transcoding = TranscodingCache()


__all__ = ["PushJob", "SegmentingCache", "StreamCache", "StreamJob", "TranscodingCache"]
