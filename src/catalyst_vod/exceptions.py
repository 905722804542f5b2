"""Custom exceptions raised by the catalyst-vod package."""
from __future__ import annotations


class CatalystError(RuntimeError):
    """Base error for the catalyst-vod package."""


class PayloadParseError(CatalystError, ValueError):
    """Raised when a media server trigger payload is malformed."""


class CacheMissError(CatalystError, LookupError):
    """Raised when a stream is not present in the job cache."""

    def __init__(self, stream_name: str) -> None:
        super().__init__(f"cache mismatch for {stream_name}")
        self.stream_name = stream_name


class TranscodeProtocolError(CatalystError):
    """Raised when a segment transcode exchange with the broadcaster fails."""


class MistClientError(CatalystError):
    """Raised when the media server API rejects or fails a request."""


class CallbackError(CatalystError):
    """Raised when a status callback cannot be delivered."""


class StorageError(CatalystError):
    """Raised when an object-store read or write fails."""


class ManifestError(CatalystError):
    """Raised when an HLS manifest cannot be downloaded, parsed or written."""


__all__ = [
    "CatalystError",
    "PayloadParseError",
    "CacheMissError",
    "TranscodeProtocolError",
    "MistClientError",
    "CallbackError",
    "StorageError",
    "ManifestError",
]
