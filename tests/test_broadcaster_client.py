from __future__ import annotations

import json
import time

import pytest
import requests

from conftest import FakeResponse, RecordingSession

from catalyst_vod.clients.broadcaster import LocalBroadcasterClient, decode_multipart
from catalyst_vod.exceptions import TranscodeProtocolError
from catalyst_vod.video import EncodedProfile

BOUNDARY = "rendition-boundary"
BINARY = bytes(range(256)) + b"\r\n--not-a-boundary\r\n" + b"\x00\xff" * 32


def _multipart(*parts: tuple[str, str, bytes]) -> bytes:
    body = b""
    for content_type, name, data in parts:
        body += (
            f"--{BOUNDARY}\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Rendition-Name: {name}\r\n"
            "\r\n"
        ).encode("ascii")
        body += data + b"\r\n"
    body += f"--{BOUNDARY}--\r\n".encode("ascii")
    return body


def _client(*responses) -> tuple[LocalBroadcasterClient, RecordingSession]:
    session = RecordingSession(*responses)
    return LocalBroadcasterClient("http://broadcaster:8935/", session=session), session


def test_transcode_segment_sends_protocol_headers_and_decodes_parts() -> None:
    body = _multipart(
        ("video/mp2t", "720p0", BINARY),
        ("application/vnd+livepeer.uri", "360p0", b"https://cdn/360p0/1.ts"),
    )
    client, session = _client(
        FakeResponse(200, content=body, headers={"Content-Type": f"multipart/mixed; boundary={BOUNDARY}"})
    )
    profiles = [EncodedProfile(name="720p0", width=1280, height=720, bitrate=4_000_000)]

    result = client.transcode_segment(b"segment-bytes", 7, profiles, 2000, "manifest-abc")

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "http://broadcaster:8935/live/manifest-abc/7.ts"
    assert kwargs["data"] == b"segment-bytes"
    headers = kwargs["headers"]
    assert headers["Content-Type"] == "video/mp2t"
    assert headers["Accept"] == "multipart/mixed"
    assert headers["Content-Duration"] == "2000"
    config = json.loads(headers["Livepeer-Transcode-Configuration"])
    assert config["timeoutMultiplier"] == 10
    assert config["profiles"][0]["name"] == "720p0"
    assert kwargs["timeout"] == 180.0

    assert [rendition.name for rendition in result.renditions] == ["720p0", "360p0"]
    assert result.renditions[0].media_data == BINARY
    assert result.renditions[0].media_url is None
    assert result.renditions[1].media_url == "https://cdn/360p0/1.ts"
    assert result.renditions[1].media_data is None


def test_part_order_defines_rendition_order() -> None:
    body = _multipart(
        ("video/mp2t", "b", b"2"),
        ("video/mp2t", "a", b"1"),
        ("video/mp2t", "c", b"3"),
    )
    renditions = decode_multipart(f"multipart/mixed; boundary={BOUNDARY}", body)
    assert [(r.name, r.media_data) for r in renditions] == [("b", b"2"), ("a", b"1"), ("c", b"3")]


def test_non_multipart_response_is_a_protocol_error() -> None:
    client, _ = _client(FakeResponse(200, content=b"{}", headers={"Content-Type": "application/json"}))
    with pytest.raises(TranscodeProtocolError, match="multipart/mixed"):
        client.transcode_segment(b"x", 0, [], 1000, "m")


def test_non_2xx_response_includes_body() -> None:
    client, _ = _client(FakeResponse(500, content=b"engine exploded"))
    with pytest.raises(TranscodeProtocolError, match="HTTP 500.*engine exploded"):
        client.transcode_segment(b"x", 0, [], 1000, "m")


def test_huge_error_body_is_replaced() -> None:
    client, _ = _client(FakeResponse(502, content=b"x" * 10_001))
    with pytest.raises(TranscodeProtocolError) as excinfo:
        client.transcode_segment(b"x", 0, [], 1000, "m")
    assert "<Too long to include in error>" in str(excinfo.value)
    assert "xxxx" not in str(excinfo.value)


def test_transport_failure_is_a_protocol_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"))
    with pytest.raises(TranscodeProtocolError, match="refused"):
        client.transcode_segment(b"x", 0, [], 1000, "m")


class SlowSegment:
    def __init__(self, chunks: int) -> None:
        self.remaining = chunks

    def read(self, size: int) -> bytes:
        if not self.remaining:
            return b""
        self.remaining -= 1
        time.sleep(0.1)
        return b"\x47" * 188


def test_slow_upload_exceeding_the_timeout_is_a_protocol_error() -> None:
    session = RecordingSession(FakeResponse(200))
    client = LocalBroadcasterClient("http://broadcaster:8935", timeout=0.05, session=session)

    with pytest.raises(TranscodeProtocolError, match="timed out sending segment"):
        client.transcode_segment(SlowSegment(3), 0, [], 1000, "m")


def test_missing_closing_boundary_is_rejected() -> None:
    body = (
        f"--{BOUNDARY}\r\nContent-Type: video/mp2t\r\nRendition-Name: a\r\n\r\ndata\r\n"
    ).encode("ascii")
    with pytest.raises(TranscodeProtocolError, match="malformed"):
        decode_multipart(f"multipart/mixed; boundary={BOUNDARY}", body)


def test_part_without_content_type_is_rejected() -> None:
    body = (
        f"--{BOUNDARY}\r\nRendition-Name: a\r\n\r\ndata\r\n--{BOUNDARY}--\r\n"
    ).encode("ascii")
    with pytest.raises(TranscodeProtocolError, match="Content-Type"):
        decode_multipart(f"multipart/mixed; boundary={BOUNDARY}", body)


def test_missing_boundary_parameter_is_rejected() -> None:
    with pytest.raises(TranscodeProtocolError):
        decode_multipart("multipart/mixed", b"whatever")


def test_configuration_header_omitted_without_profiles() -> None:
    body = _multipart(("video/mp2t", "a", b"1"))
    client, session = _client(
        FakeResponse(200, content=body, headers={"Content-Type": f"multipart/mixed; boundary={BOUNDARY}"})
    )
    client.transcode_segment(b"x", 3, [], 1000, "m")
    assert "Livepeer-Transcode-Configuration" not in session.calls[0][2]["headers"]
