from __future__ import annotations

import json
import threading
import time
from urllib.parse import unquote_plus

import pytest
import requests

from conftest import FakeResponse, RecordingSession

from catalyst_vod.clients.mist import MistClient, MistStreamInfo, encode_command
from catalyst_vod.exceptions import MistClientError

TRIGGER_URL = "http://host.docker.internal:8080/api/mist/trigger"


def _client(*responses) -> tuple[MistClient, RecordingSession]:
    session = RecordingSession(*responses)
    client = MistClient("http://localhost:4242/api2", "http://localhost:8080/", TRIGGER_URL, session=session)
    return client, session


def test_add_stream_command_encoding() -> None:
    client, session = _client()
    client.add_stream("somestream", "http://some-storage-url.com/vod.mp4")

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://localhost:4242/api2")
    assert kwargs["data"] == (
        "command=%7B%22addstream%22%3A%7B%22somestream%22%3A%7B%22source%22%3A%22"
        "http%3A%2F%2Fsome-storage-url.com%2Fvod.mp4%22%7D%7D%7D"
    )


def test_push_start_and_delete_stream_encoding() -> None:
    assert encode_command({"push_start": {"stream": "s", "target": "t"}}) == (
        "command=%7B%22push_start%22%3A%7B%22stream%22%3A%22s%22%2C%22target%22%3A%22t%22%7D%7D"
    )
    assert encode_command({"deletestream": {"somestream": None}}) == (
        "command=%7B%22deletestream%22%3A%7B%22somestream%22%3Anull%7D%7D"
    )


def test_add_trigger_appends_to_existing_triggers() -> None:
    existing = {"config": {"triggers": {"RECORDING_END": [{"handler": "h", "streams": ["other"], "sync": False}]}}}
    client, session = _client(FakeResponse(200, json_data=existing), FakeResponse(200, json_data={}))

    client.add_trigger("catalyst_vod_x", "RECORDING_END")

    assert session.calls[0][2]["data"] == encode_command({"config": True})
    assert session.calls[1][2]["data"] == encode_command(
        {
            "config": {
                "triggers": {
                    "RECORDING_END": [
                        {"handler": "h", "streams": ["other"], "sync": False},
                        {"handler": TRIGGER_URL, "streams": ["catalyst_vod_x"], "sync": False},
                    ]
                }
            }
        }
    )


def test_delete_trigger_removes_only_matching_entries() -> None:
    existing = {
        "config": {
            "triggers": {
                "PUSH_END": [
                    {"handler": "h", "streams": ["tr_src_a"], "sync": False},
                    {"handler": "h", "streams": ["tr_src_b"], "sync": False},
                ]
            }
        }
    }
    client, session = _client(FakeResponse(200, json_data=existing), FakeResponse(200, json_data={}))

    client.delete_trigger("tr_src_a", "PUSH_END")

    assert session.calls[1][2]["data"] == encode_command(
        {"config": {"triggers": {"PUSH_END": [{"handler": "h", "streams": ["tr_src_b"], "sync": False}]}}}
    )


def test_media_server_error_reply_raises() -> None:
    client, _ = _client(FakeResponse(200, json_data={"error": "no such stream"}))
    with pytest.raises(MistClientError, match="no such stream"):
        client.delete_stream("x")


def test_transport_failure_raises() -> None:
    client, _ = _client(requests.ConnectionError("down"))
    with pytest.raises(MistClientError):
        client.push_start("x", "y")


def test_get_stream_info_validates_tracks() -> None:
    reply = {
        "meta": {
            "tracks": {
                "video_H264_1280x720_24fps_0": {
                    "type": "video",
                    "codec": "H264",
                    "bps": 125000,
                    "firstms": 0,
                    "lastms": 5000,
                    "width": 1280,
                    "height": 720,
                    "fpks": 24000,
                },
                "audio_AAC_2ch_48000hz_1": {
                    "type": "audio",
                    "codec": "AAC",
                    "bps": 16000,
                    "firstms": 0,
                    "lastms": 4990,
                    "channels": 2,
                    "rate": 48000,
                    "size": 16,
                },
            }
        }
    }
    client, session = _client(FakeResponse(200, json_data=reply))

    info = client.get_stream_info("catalyst_vod_x")

    assert session.calls[0][:2] == ("GET", "http://localhost:8080/json_catalyst_vod_x.js")
    assert [track.type for track in info.tracks] == ["audio", "video"]
    assert info.video_duration_ms == 5000
    assert info.video_track().fpks == 24000


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"error": "Stream is offline"},
        {"meta": {}},
        {"meta": {"tracks": {"v": {"type": "video"}}}},
        {"meta": {"tracks": {"v": {"type": "video", "codec": "H264", "lastms": "soon"}}}},
    ],
)
def test_stream_info_schema_violations_raise(payload) -> None:
    with pytest.raises(MistClientError):
        MistStreamInfo.from_payload(payload)


class SlowTriggerServer:
    """Media server stand-in that keeps a real triggers map and answers config reads slowly."""

    def __init__(self, triggers: dict) -> None:
        self.triggers = triggers
        self._lock = threading.Lock()

    def post(self, url: str, **kwargs):
        command = json.loads(unquote_plus(kwargs["data"][len("command="):]))
        config = command.get("config")
        if config is True:
            with self._lock:
                snapshot = json.loads(json.dumps(self.triggers))
            time.sleep(0.1)
            return FakeResponse(200, json_data={"config": {"triggers": snapshot}})
        if isinstance(config, dict):
            with self._lock:
                self.triggers = config["triggers"]
        return FakeResponse(200, json_data={})


def test_concurrent_trigger_updates_are_not_lost() -> None:
    server = SlowTriggerServer(
        {"RECORDING_END": [{"handler": TRIGGER_URL, "streams": ["catalyst_vod_x"], "sync": False}]}
    )
    client = MistClient("http://localhost:4242/api2", "http://localhost:8080", TRIGGER_URL, session=server)

    threads = [
        threading.Thread(target=client.add_trigger, args=("catalyst_vod_y", "RECORDING_END")),
        threading.Thread(target=client.delete_trigger, args=("catalyst_vod_x", "RECORDING_END")),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert server.triggers["RECORDING_END"] == [
        {"handler": TRIGGER_URL, "streams": ["catalyst_vod_y"], "sync": False}
    ]
