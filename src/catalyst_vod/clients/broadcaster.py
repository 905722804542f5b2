"""HTTP client for the segment transcode protocol spoken by the broadcaster."""
from __future__ import annotations

import email.policy
import json
import logging
import time
from dataclasses import dataclass
from email.message import Message
from email.parser import BytesParser
from typing import BinaryIO, Iterable, Iterator, Optional, Sequence, Union

import requests

from ..exceptions import TranscodeProtocolError
from ..utils import strip_trailing_slash, truncate_for_error
from ..video import EncodedProfile

LOGGER = logging.getLogger(__name__)

TIMEOUT_MULTIPLIER = 10
URI_CONTENT_TYPE = "application/vnd+livepeer.uri"
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class RenditionSegment:
    """One rendition of a transcoded segment: inline bytes or a URL."""

    name: str
    media_data: Optional[bytes] = None
    media_url: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.media_data) if self.media_data is not None else 0


@dataclass(frozen=True)
class TranscodeResult:
    renditions: tuple[RenditionSegment, ...] = ()


SegmentBody = Union[bytes, BinaryIO, Iterable[bytes]]


class LocalBroadcasterClient:
    """Submit segments to a broadcaster and decode its multipart replies."""

    def __init__(
        self,
        broadcaster_url: str,
        *,
        timeout: float = 180.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = strip_trailing_slash(broadcaster_url)
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def segment_url(self, manifest_id: str, sequence_number: int) -> str:
        return f"{self._base_url}/live/{manifest_id}/{sequence_number}.ts"

    def transcode_segment(
        self,
        segment: SegmentBody,
        sequence_number: int,
        profiles: Sequence[EncodedProfile],
        duration_millis: int,
        manifest_id: str,
    ) -> TranscodeResult:
        """POST one segment and return its renditions in response order.

        Raises :class:`TranscodeProtocolError` for any failure; no partial
        result is ever returned. The timeout bounds the whole exchange: it is
        checked while the segment is sent and while the reply is read, and a
        single blocked socket operation is cut off by the same timeout.
        """

        url = self.segment_url(manifest_id, sequence_number)
        deadline = time.monotonic() + self._timeout
        headers = {
            "Content-Type": "video/mp2t",
            "Accept": "multipart/mixed",
            "Content-Duration": str(int(duration_millis)),
        }
        if profiles:
            headers["Livepeer-Transcode-Configuration"] = json.dumps(
                {
                    "profiles": [profile.to_dict() for profile in profiles],
                    "timeoutMultiplier": TIMEOUT_MULTIPLIER,
                }
            )

        try:
            response = self._session.post(
                url,
                data=_within_deadline(_chunked(segment), deadline),
                headers=headers,
                timeout=self._timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise TranscodeProtocolError(f"failed to POST segment to {url}: {exc}") from exc

        try:
            body = _read_body(response, deadline)
        except requests.RequestException as exc:
            raise TranscodeProtocolError(f"failed to read response from {url}: {exc}") from exc
        finally:
            response.close()

        if not 200 <= response.status_code < 300:
            text = body.decode("utf-8", errors="replace")
            raise TranscodeProtocolError(
                f"broadcaster returned HTTP {response.status_code} for {url}: "
                f"{truncate_for_error(text)}"
            )

        content_type = response.headers.get("Content-Type", "")
        renditions = decode_multipart(content_type, body)
        LOGGER.debug(
            "Transcoded segment %s of %s into %d renditions",
            sequence_number,
            manifest_id,
            len(renditions),
        )
        return TranscodeResult(renditions=tuple(renditions))


def _chunked(segment: SegmentBody) -> Iterator[bytes]:
    # A generator body makes requests use chunked transfer encoding.
    if isinstance(segment, (bytes, bytearray)):
        view = bytes(segment)
        for offset in range(0, len(view), _CHUNK_SIZE):
            yield view[offset : offset + _CHUNK_SIZE]
        return
    read = getattr(segment, "read", None)
    if callable(read):
        while True:
            chunk = read(_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk
    else:
        for chunk in segment:
            if chunk:
                yield chunk


def _within_deadline(chunks: Iterable[bytes], deadline: float) -> Iterator[bytes]:
    for chunk in chunks:
        if time.monotonic() > deadline:
            raise TranscodeProtocolError("timed out sending segment to broadcaster")
        yield chunk


def _read_body(response: requests.Response, deadline: float) -> bytes:
    chunks: list[bytes] = []
    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
        if time.monotonic() > deadline:
            raise TranscodeProtocolError("timed out reading transcode response")
        if chunk:
            chunks.append(chunk)
    return b"".join(chunks)


def decode_multipart(content_type: str, body: bytes) -> list[RenditionSegment]:
    """Decode a ``multipart/mixed`` body into renditions, preserving part order."""

    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != "multipart/mixed":
        raise TranscodeProtocolError(
            f"expected multipart/mixed response but got {content_type or 'no content type'}"
        )

    envelope = b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    message = BytesParser(policy=email.policy.HTTP).parsebytes(envelope)
    if not message.is_multipart() or not message.get_boundary():
        raise TranscodeProtocolError("malformed multipart response: missing boundary")
    if message.defects:
        raise TranscodeProtocolError(f"malformed multipart response: {message.defects[0]!r}")

    renditions: list[RenditionSegment] = []
    for part in message.iter_parts():
        renditions.append(_decode_part(part))
    return renditions


def _decode_part(part: Message) -> RenditionSegment:
    if part.defects:
        raise TranscodeProtocolError(f"malformed multipart part: {part.defects[0]!r}")
    if part.get("Content-Type") is None:
        raise TranscodeProtocolError("multipart part is missing its Content-Type")
    name = (part.get("Rendition-Name") or "").strip()
    payload = part.get_payload(decode=True)
    if payload is None:
        payload = b""
    if part.get_content_type() == URI_CONTENT_TYPE:
        return RenditionSegment(name=name, media_url=payload.decode("utf-8").strip())
    return RenditionSegment(name=name, media_data=payload)


__all__ = [
    "TIMEOUT_MULTIPLIER",
    "URI_CONTENT_TYPE",
    "LocalBroadcasterClient",
    "RenditionSegment",
    "TranscodeResult",
    "decode_multipart",
]
