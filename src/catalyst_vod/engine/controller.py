"""Trigger-driven pipeline controller for segmented VOD jobs."""
from __future__ import annotations

import enum
import logging
import threading
from collections import OrderedDict, deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

from ..cache import PushJob, StreamCache, StreamJob
from ..clients.callback import CallbackClient, TranscodeStatus
from ..clients.mist import TRIGGER_PUSH_END, TRIGGER_RECORDING_END, MistClient
from ..clients.storage import join_url
from ..config import MAX_SEGMENT_SIZE_SECS
from ..exceptions import CacheMissError, CallbackError, MistClientError
from ..transcode import TranscodeProcess, TranscodeSegmentRequest, input_video_from_stream_info
from ..utils import random_trailer
from ..video import EncodedProfile
from .status import PipelineStatusBroadcaster
from .triggers import (
    SEGMENTING_PREFIX,
    TRANSCODING_PREFIX,
    Pipeline,
    RecordingEndPayload,
    parse_push_end_payload,
    parse_recording_end_payload,
    stream_name_to_pipeline,
)

LOGGER = logging.getLogger(__name__)


class PipelinePhase(str, enum.Enum):
    SEGMENTING = "segmenting"
    TRANSCODING = "transcoding"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerOutcome(str, enum.Enum):
    STARTED = "started"
    PENDING = "pending"
    FINISHED = "finished"
    UNKNOWN_STREAM = "unknown_stream"
    IGNORED = "ignored"


@dataclass(frozen=True)
class NonFatalError:
    stage: str
    stream_name: str
    message: str


class NonFatalErrorLog:
    """Errors that were logged and then deliberately not propagated.

    Only the most recent ``max_entries`` are kept.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self._lock = threading.Lock()
        self._entries: deque[NonFatalError] = deque(maxlen=max(1, int(max_entries)))

    def record(self, stage: str, stream_name: str, error: Any) -> NonFatalError:
        entry = NonFatalError(stage=stage, stream_name=stream_name, message=str(error))
        with self._lock:
            self._entries.append(entry)
        LOGGER.warning("Non-fatal %s failure for %s: %s", stage, stream_name, entry.message)
        return entry

    def entries(self, stream_name: Optional[str] = None) -> list[NonFatalError]:
        with self._lock:
            items = list(self._entries)
        if stream_name is None:
            return items
        return [entry for entry in items if entry.stream_name == stream_name]

    def stages(self, stream_name: Optional[str] = None) -> list[str]:
        return [entry.stage for entry in self.entries(stream_name)]

    def forget(self, stream_name: str) -> None:
        with self._lock:
            kept = [entry for entry in self._entries if entry.stream_name != stream_name]
            self._entries.clear()
            self._entries.extend(kept)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@dataclass(frozen=True)
class VodRequest:
    source_url: str
    callback_url: str
    upload_url: str
    access_token: str = ""
    transcode_api_url: str = ""
    profiles: tuple[EncodedProfile, ...] = ()


@dataclass(frozen=True)
class PushTranscodeRequest:
    source_url: str
    callback_url: str
    destinations: tuple[str, ...] = ()


class PipelineController:
    """Move streams through segmenting, transcoding and completion.

    Trigger handlers only do the synchronous part of each transition. The
    transcode run itself executes on a bounded pool and is tracked as a
    :class:`~concurrent.futures.Future` keyed by stream name.
    Only the latest ``run_history`` finished runs stay queryable.
    """

    def __init__(
        self,
        cache: StreamCache,
        mist: MistClient,
        callbacks: CallbackClient,
        transcoder: TranscodeProcess,
        *,
        max_runs: int = 8,
        duration_tolerance_ms: int = 500,
        segment_size_secs: int = 10,
        run_history: int = 256,
        status_broadcaster: Optional[PipelineStatusBroadcaster] = None,
        errors: Optional[NonFatalErrorLog] = None,
    ) -> None:
        self._cache = cache
        self._mist = mist
        self._callbacks = callbacks
        self._transcoder = transcoder
        self._duration_tolerance_ms = max(0, int(duration_tolerance_ms))
        self._segment_size_secs = min(MAX_SEGMENT_SIZE_SECS, max(1, int(segment_size_secs)))
        self._status_broadcaster = status_broadcaster
        self.errors = errors or NonFatalErrorLog()
        self._lock = threading.Lock()
        self._phases: dict[str, PipelinePhase] = {}
        self._runs: dict[str, Future] = {}
        self._run_history = max(1, int(run_history))
        self._retired: OrderedDict[str, None] = OrderedDict()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, int(max_runs)),
            thread_name_prefix="vod-pipeline",
        )

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------
    def start_vod(self, request: VodRequest) -> str:
        """Ask the media server to segment ``request.source_url`` into HLS."""

        stream_name = f"{SEGMENTING_PREFIX}{random_trailer()}"
        self._cache.segmenting.store(
            stream_name,
            request.callback_url,
            source_file=request.source_url,
            access_token=request.access_token,
            transcode_api_url=request.transcode_api_url,
            upload_url=request.upload_url,
            profiles=request.profiles,
        )
        target = (
            join_url(request.upload_url, "source", "$currentMediaTime.ts")
            + f"?m3u8=index.m3u8&split={self._segment_size_secs}"
        )
        try:
            self._mist.add_stream(stream_name, request.source_url)
            self._mist.add_trigger(stream_name, TRIGGER_RECORDING_END)
            self._mist.push_start(stream_name, target)
        except MistClientError:
            self._cache.segmenting.remove(stream_name)
            raise
        self._set_phase(stream_name, PipelinePhase.SEGMENTING)
        LOGGER.info("Segmenting %s as %s", request.source_url, stream_name)
        self._notify(stream_name, request.callback_url, TranscodeStatus.PREPARING, 0.0)
        return stream_name

    def start_push_transcode(self, request: PushTranscodeRequest) -> str:
        """Push ``request.source_url`` to every destination through the media server."""

        stream_name = f"{TRANSCODING_PREFIX}{random_trailer()}"
        self._cache.transcoding.store(
            stream_name,
            PushJob(
                stream_name=stream_name,
                callback_url=request.callback_url,
                source=request.source_url,
            ),
        )
        try:
            self._mist.add_stream(stream_name, request.source_url)
            self._mist.add_trigger(stream_name, TRIGGER_PUSH_END)
            for destination in request.destinations:
                self._cache.transcoding.add_destination(stream_name, destination)
                self._mist.push_start(stream_name, destination)
        except MistClientError:
            self._cache.transcoding.remove(stream_name)
            raise
        LOGGER.info(
            "Pushing %s as %s to %d destinations",
            request.source_url,
            stream_name,
            len(request.destinations),
        )
        return stream_name

    # ------------------------------------------------------------------
    # Trigger handlers
    # ------------------------------------------------------------------
    def handle_recording_end(self, raw_payload: str) -> TriggerOutcome:
        """React to a finished file write.

        Raises :class:`~catalyst_vod.exceptions.PayloadParseError` before
        touching any state when the payload is malformed.
        """

        payload = parse_recording_end_payload(raw_payload)
        pipeline = stream_name_to_pipeline(payload.stream_name)
        if pipeline is not Pipeline.SEGMENTING:
            LOGGER.debug("Ignoring RECORDING_END for %s stream %s", pipeline.value, payload.stream_name)
            return TriggerOutcome.IGNORED
        return self._recording_end_segmenting(payload)

    def handle_push_end(self, raw_payload: str) -> TriggerOutcome:
        payload = parse_push_end_payload(raw_payload)
        stream_name = payload.stream_name
        if stream_name_to_pipeline(stream_name) is not Pipeline.TRANSCODING:
            return TriggerOutcome.IGNORED
        try:
            job = self._cache.transcoding.get(stream_name)
        except CacheMissError:
            LOGGER.info("PUSH_END trigger invoked for unknown stream %s", stream_name)
            return TriggerOutcome.UNKNOWN_STREAM

        if not self._cache.transcoding.remove_push_destination(stream_name, payload.target_uri):
            return TriggerOutcome.PENDING

        self._cache.transcoding.remove(stream_name)
        self._cleanup_stream(stream_name, TRIGGER_PUSH_END)
        self._notify(stream_name, job.callback_url, TranscodeStatus.SUCCESS, 1.0)
        LOGGER.info("All pushes for %s finished", stream_name)
        return TriggerOutcome.FINISHED

    # ------------------------------------------------------------------
    # Run tracking
    # ------------------------------------------------------------------
    def phase(self, stream_name: str) -> Optional[PipelinePhase]:
        with self._lock:
            return self._phases.get(stream_name)

    def run(self, stream_name: str) -> Optional[Future]:
        with self._lock:
            return self._runs.get(stream_name)

    def wait(self, stream_name: str, timeout: Optional[float] = None) -> Optional[PipelinePhase]:
        future = self.run(stream_name)
        if future is None:
            return self.phase(stream_name)
        return future.result(timeout=timeout)

    def describe(self, stream_name: str) -> Optional[dict[str, Any]]:
        phase = self.phase(stream_name)
        if phase is None:
            return None
        future = self.run(stream_name)
        return {
            "stream_name": stream_name,
            "phase": phase.value,
            "running": bool(future is not None and not future.done()),
            "non_fatal_errors": [
                {"stage": entry.stage, "message": entry.message}
                for entry in self.errors.entries(stream_name)
            ],
        }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _recording_end_segmenting(self, payload: RecordingEndPayload) -> TriggerOutcome:
        stream_name = payload.stream_name
        try:
            job = self._cache.segmenting.take(stream_name)
        except CacheMissError:
            LOGGER.info("RECORDING_END trigger invoked for unknown stream %s", stream_name)
            return TriggerOutcome.UNKNOWN_STREAM

        self._cleanup_stream(stream_name, TRIGGER_RECORDING_END)
        if self.phase(stream_name) is None:
            self._set_phase(stream_name, PipelinePhase.SEGMENTING)
        self._notify(stream_name, job.callback_url, TranscodeStatus.PREPARING_COMPLETED, 1.0)
        future = self._executor.submit(self._run_pipeline, job, payload)
        with self._lock:
            self._runs[stream_name] = future
        future.add_done_callback(lambda _: self._retire(stream_name))
        return TriggerOutcome.STARTED

    def _run_pipeline(self, job: StreamJob, payload: RecordingEndPayload) -> PipelinePhase:
        stream_name = job.stream_name
        try:
            info = self._mist.get_stream_info(stream_name)
        except MistClientError as exc:
            self.errors.record("stream-info", stream_name, exc)
            return self._set_phase(stream_name, PipelinePhase.FAILED)

        source_ms = info.video_duration_ms
        segmented_ms = payload.stream_media_duration_millis
        if abs(source_ms - segmented_ms) > self._duration_tolerance_ms:
            self.errors.record(
                "duration-check",
                stream_name,
                f"input video duration {source_ms} ms does not match "
                f"segmented video duration {segmented_ms} ms",
            )
            return self._set_phase(stream_name, PipelinePhase.FAILED)

        self._set_phase(stream_name, PipelinePhase.TRANSCODING)
        request = TranscodeSegmentRequest(
            source_file=job.source_file,
            callback_url=job.callback_url,
            upload_url=job.upload_url,
            source_stream_info=info,
            access_token=job.access_token,
            transcode_api_url=job.transcode_api_url,
            profiles=job.profiles,
        )

        def _report(ratio: float) -> None:
            self._notify(stream_name, job.callback_url, TranscodeStatus.TRANSCODING, ratio)

        try:
            outputs = self._transcoder.run(request, stream_name, segmented_ms, _report)
        except Exception as exc:
            LOGGER.error(
                "Transcode run for %s failed (source=%s target=%s): %s",
                stream_name,
                job.source_file,
                job.upload_url,
                exc,
            )
            self._set_phase(stream_name, PipelinePhase.FAILED)
            try:
                self._callbacks.send_transcode_status_error(
                    job.callback_url, f"Transcoding Failed: {exc}"
                )
            except CallbackError as callback_exc:
                self.errors.record("error-callback", stream_name, callback_exc)
            return PipelinePhase.FAILED

        input_video = input_video_from_stream_info(
            info,
            duration_ms=segmented_ms,
            size_bytes=payload.written_bytes,
        )
        self._set_phase(stream_name, PipelinePhase.COMPLETED)
        try:
            self._callbacks.send_transcode_status_completed(job.callback_url, input_video, outputs)
        except CallbackError as exc:
            self.errors.record("completed-callback", stream_name, exc)
        LOGGER.info("Transcode run for %s completed", stream_name)
        return PipelinePhase.COMPLETED

    def _retire(self, stream_name: str) -> None:
        # Finished runs are kept for lookups until newer ones push them out.
        evicted: list[str] = []
        with self._lock:
            self._retired[stream_name] = None
            self._retired.move_to_end(stream_name)
            while len(self._retired) > self._run_history:
                oldest, _ = self._retired.popitem(last=False)
                self._phases.pop(oldest, None)
                self._runs.pop(oldest, None)
                evicted.append(oldest)
        for name in evicted:
            self.errors.forget(name)
            LOGGER.debug("Evicted finished run %s", name)

    def _cleanup_stream(self, stream_name: str, trigger_name: str) -> None:
        try:
            self._mist.delete_stream(stream_name)
        except MistClientError as exc:
            self.errors.record("delete-stream", stream_name, exc)
        try:
            self._mist.delete_trigger(stream_name, trigger_name)
        except MistClientError as exc:
            self.errors.record("delete-trigger", stream_name, exc)

    def _notify(self, stream_name: str, url: str, status: str, ratio: float) -> None:
        try:
            self._callbacks.send_transcode_status(url, status, ratio)
        except CallbackError as exc:
            self.errors.record(f"{status}-callback", stream_name, exc)

    def _set_phase(self, stream_name: str, phase: PipelinePhase) -> PipelinePhase:
        with self._lock:
            self._phases[stream_name] = phase
        LOGGER.debug("Stream %s is now %s", stream_name, phase.value)
        broadcaster = self._status_broadcaster
        if broadcaster is not None:
            broadcaster.publish(stream_name, phase.value)
        return phase


__all__ = [
    "NonFatalError",
    "NonFatalErrorLog",
    "PipelineController",
    "PipelinePhase",
    "PushTranscodeRequest",
    "TriggerOutcome",
    "VodRequest",
]
