"""Parsing of media server trigger payloads and stream name routing.

Trigger bodies are newline separated values without a trailing newline,
although one is tolerated. Field order is fixed per trigger type.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

from ..exceptions import PayloadParseError

SEGMENTING_PREFIX = "catalyst_vod_"
TRANSCODING_PREFIX = "tr_src_"

RECORDING_END_FIELDS = 10
PUSH_END_FIELDS = 6


class Pipeline(str, enum.Enum):
    SEGMENTING = "segmenting"
    TRANSCODING = "transcoding"
    UNRELATED = "unrelated"


def stream_name_to_pipeline(stream_name: str) -> Pipeline:
    if stream_name.startswith(SEGMENTING_PREFIX):
        return Pipeline.SEGMENTING
    if stream_name.startswith(TRANSCODING_PREFIX):
        return Pipeline.TRANSCODING
    return Pipeline.UNRELATED


@dataclass(frozen=True)
class RecordingEndPayload:
    stream_name: str
    written_filepath: str
    output_protocol: str
    written_bytes: int
    writing_duration_secs: int
    connection_start_time_unix: int
    connection_end_time_unix: int
    stream_media_duration_millis: int
    first_media_timestamp_millis: int
    last_media_timestamp_millis: int


@dataclass(frozen=True)
class PushEndPayload:
    push_id: int
    stream_name: str
    target_uri: str
    resolved_target_uri: str
    log_messages: str
    push_status: str


def _split_lines(payload: str, expected: int, trigger: str) -> list[str]:
    if payload.endswith("\n"):
        payload = payload[:-1]
    lines = payload.split("\n")
    if len(lines) != expected:
        raise PayloadParseError(
            f"expected {expected} lines in {trigger} payload but got {len(lines)}. Payload: {payload}"
        )
    return lines


def _parse_int(lines: list[str], index: int, trigger: str) -> int:
    text = lines[index]
    try:
        # int() accepts surrounding whitespace and underscores; the wire format does not.
        if text != text.strip() or "_" in text:
            raise ValueError(f"invalid literal {text!r}")
        return int(text, 10)
    except ValueError as exc:
        raise PayloadParseError(
            f"error parsing line {index} of {trigger} payload as an int. "
            f"Line contents: {text}. Error: {exc}"
        ) from exc


def parse_recording_end_payload(payload: str) -> RecordingEndPayload:
    lines = _split_lines(payload, RECORDING_END_FIELDS, "RECORDING_END")
    numbers = [_parse_int(lines, index, "RECORDING_END") for index in range(3, 10)]
    return RecordingEndPayload(lines[0], lines[1], lines[2], *numbers)


def parse_push_end_payload(payload: str) -> PushEndPayload:
    lines = _split_lines(payload, PUSH_END_FIELDS, "PUSH_END")
    return PushEndPayload(
        push_id=_parse_int(lines, 0, "PUSH_END"),
        stream_name=lines[1],
        target_uri=lines[2],
        resolved_target_uri=lines[3],
        log_messages=lines[4],
        push_status=lines[5],
    )


__all__ = [
    "PUSH_END_FIELDS",
    "RECORDING_END_FIELDS",
    "SEGMENTING_PREFIX",
    "TRANSCODING_PREFIX",
    "Pipeline",
    "PushEndPayload",
    "RecordingEndPayload",
    "parse_push_end_payload",
    "parse_recording_end_payload",
    "stream_name_to_pipeline",
]
