"""Client for the media server's JSON control API and stream info endpoint."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote_plus

import requests

from ..exceptions import MistClientError
from ..utils import strip_trailing_slash

LOGGER = logging.getLogger(__name__)

TRIGGER_RECORDING_END = "RECORDING_END"
TRIGGER_PUSH_END = "PUSH_END"


@dataclass(frozen=True)
class MistTrack:
    """One entry of ``meta.tracks`` in a stream info reply."""

    name: str
    type: str
    codec: str
    bps: int = 0
    firstms: int = 0
    lastms: int = 0
    width: int = 0
    height: int = 0
    fpks: int = 0
    channels: int = 0
    rate: int = 0
    size: int = 0

    @classmethod
    def from_payload(cls, name: str, payload: Any) -> "MistTrack":
        if not isinstance(payload, Mapping):
            raise MistClientError(f"track {name!r} is not an object")
        track_type = payload.get("type")
        codec = payload.get("codec")
        if not isinstance(track_type, str) or not isinstance(codec, str):
            raise MistClientError(f"track {name!r} is missing its type or codec")
        values: dict[str, int] = {}
        for field_name in ("bps", "firstms", "lastms", "width", "height", "fpks", "channels", "rate", "size"):
            raw = payload.get(field_name, 0)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise MistClientError(f"track {name!r} has a non-numeric {field_name}")
            values[field_name] = int(raw)
        return cls(name=name, type=track_type, codec=codec, **values)


@dataclass(frozen=True)
class MistStreamInfo:
    """Validated subset of the media server's ``json_{stream}.js`` reply."""

    tracks: tuple[MistTrack, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "MistStreamInfo":
        if not isinstance(payload, Mapping):
            raise MistClientError("stream info reply is not an object")
        if payload.get("error"):
            raise MistClientError(f"stream info error: {payload['error']}")
        meta = payload.get("meta")
        if not isinstance(meta, Mapping):
            raise MistClientError("stream info reply has no meta section")
        raw_tracks = meta.get("tracks")
        if not isinstance(raw_tracks, Mapping):
            raise MistClientError("stream info reply has no tracks")
        tracks = tuple(
            MistTrack.from_payload(name, raw_tracks[name]) for name in sorted(raw_tracks)
        )
        return cls(tracks=tracks)

    def video_track(self) -> Optional[MistTrack]:
        for track in self.tracks:
            if track.type == "video":
                return track
        return None

    @property
    def video_duration_ms(self) -> int:
        track = self.video_track()
        return track.lastms if track is not None else 0


def encode_command(command: Mapping[str, Any]) -> str:
    """Form-encode a control command the way the media server expects."""

    return "command=" + quote_plus(json.dumps(command, separators=(",", ":")))


class MistClient:
    """Thin wrapper around the media server HTTP APIs."""

    def __init__(
        self,
        api_url: str,
        http_url: str,
        trigger_callback_url: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_url = strip_trailing_slash(api_url)
        self._http_url = strip_trailing_slash(http_url)
        self._trigger_callback_url = trigger_callback_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._triggers_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add_stream(self, stream_name: str, source_url: str) -> None:
        self._send({"addstream": {stream_name: {"source": source_url}}})

    def push_start(self, stream_name: str, target_url: str) -> None:
        self._send({"push_start": {"stream": stream_name, "target": target_url}})

    def delete_stream(self, stream_name: str) -> None:
        self._send({"deletestream": {stream_name: None}})

    def add_trigger(self, stream_name: str, trigger_name: str) -> None:
        # The triggers map is replaced wholesale, so concurrent edits must not interleave.
        with self._triggers_lock:
            triggers = self._current_triggers()
            entries = [
                entry
                for entry in triggers.get(trigger_name, [])
                if not _targets_stream(entry, stream_name)
            ]
            entries.append(
                {
                    "handler": self._trigger_callback_url,
                    "streams": [stream_name],
                    "sync": False,
                }
            )
            triggers[trigger_name] = entries
            self._send({"config": {"triggers": triggers}})

    def delete_trigger(self, stream_name: str, trigger_name: str) -> None:
        with self._triggers_lock:
            triggers = self._current_triggers()
            entries = triggers.get(trigger_name, [])
            remaining = [entry for entry in entries if not _targets_stream(entry, stream_name)]
            if len(remaining) == len(entries):
                LOGGER.debug("No %s trigger registered for %s", trigger_name, stream_name)
                return
            triggers[trigger_name] = remaining
            self._send({"config": {"triggers": triggers}})

    def get_stream_info(self, stream_name: str) -> MistStreamInfo:
        url = f"{self._http_url}/json_{stream_name}.js"
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise MistClientError(f"failed to fetch stream info for {stream_name}: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise MistClientError(
                f"stream info for {stream_name} returned HTTP {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MistClientError(f"stream info for {stream_name} is not JSON") from exc
        return MistStreamInfo.from_payload(payload)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _current_triggers(self) -> dict[str, list[Any]]:
        reply = self._send({"config": True})
        config = reply.get("config") if isinstance(reply, Mapping) else None
        triggers = config.get("triggers") if isinstance(config, Mapping) else None
        if not isinstance(triggers, Mapping):
            return {}
        return {
            name: list(entries) for name, entries in triggers.items() if isinstance(entries, list)
        }

    def _send(self, command: Mapping[str, Any]) -> Any:
        body = encode_command(command)
        try:
            response = self._session.post(
                self._api_url,
                data=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise MistClientError(f"media server request failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise MistClientError(f"media server returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, Mapping) and payload.get("error"):
            raise MistClientError(f"media server error: {payload['error']}")
        return payload


def _targets_stream(entry: Any, stream_name: str) -> bool:
    if not isinstance(entry, Mapping):
        return False
    streams = entry.get("streams")
    return isinstance(streams, list) and stream_name in streams


__all__ = [
    "TRIGGER_PUSH_END",
    "TRIGGER_RECORDING_END",
    "MistClient",
    "MistStreamInfo",
    "MistTrack",
    "encode_command",
]
