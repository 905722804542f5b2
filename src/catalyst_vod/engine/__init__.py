"""Pipeline state machine, trigger parsing and status broadcasting."""
from __future__ import annotations

from .controller import (
    NonFatalError,
    NonFatalErrorLog,
    PipelineController,
    PipelinePhase,
    PushTranscodeRequest,
    TriggerOutcome,
    VodRequest,
)
from .status import PipelineStatusBroadcaster
from .triggers import (
    PushEndPayload,
    RecordingEndPayload,
    parse_push_end_payload,
    parse_recording_end_payload,
    stream_name_to_pipeline,
)

__all__ = [
    "NonFatalError",
    "NonFatalErrorLog",
    "PipelineController",
    "PipelinePhase",
    "PipelineStatusBroadcaster",
    "PushEndPayload",
    "PushTranscodeRequest",
    "RecordingEndPayload",
    "TriggerOutcome",
    "VodRequest",
    "parse_push_end_payload",
    "parse_recording_end_payload",
    "stream_name_to_pipeline",
]
