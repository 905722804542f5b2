"""Status callbacks reported to the caller that requested a VOD job."""
from __future__ import annotations

import logging
import time
from typing import Any, Optional, Sequence

import requests

from ..exceptions import CallbackError
from ..video import InputVideo, OutputVideo

LOGGER = logging.getLogger(__name__)


class TranscodeStatus:
    PREPARING = "preparing"
    PREPARING_COMPLETED = "preparing-completed"
    TRANSCODING = "transcoding"
    SUCCESS = "success"
    ERROR = "error"

    ALL = (PREPARING, PREPARING_COMPLETED, TRANSCODING, SUCCESS, ERROR)


class CallbackClient:
    """POST JSON status updates. Each call is a single attempt."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def send_transcode_status(self, url: str, status: str, completion_ratio: float) -> None:
        if status not in TranscodeStatus.ALL:
            raise ValueError(f"unknown transcode status {status!r}")
        self._post(url, {"status": status, "completion_ratio": _clamp_ratio(completion_ratio)})

    def send_transcode_status_error(self, url: str, message: str) -> None:
        self._post(
            url,
            {"status": TranscodeStatus.ERROR, "completion_ratio": 1.0, "error": message},
        )

    def send_transcode_status_completed(
        self,
        url: str,
        input_video: InputVideo,
        outputs: Sequence[OutputVideo],
    ) -> None:
        self._post(
            url,
            {
                "status": TranscodeStatus.SUCCESS,
                "completion_ratio": 1.0,
                "type": "video",
                "video_spec": input_video.to_dict(),
                "outputs": [output.to_dict() for output in outputs],
            },
        )

    def _post(self, url: str, body: dict[str, Any]) -> None:
        if not url:
            raise CallbackError("callback URL is empty")
        payload = dict(body)
        payload["timestamp"] = int(time.time() * 1000)
        try:
            response = self._session.post(url, json=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            raise CallbackError(f"failed to send {payload['status']} callback to {url}: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise CallbackError(
                f"{payload['status']} callback to {url} returned HTTP {response.status_code}"
            )
        LOGGER.debug("Sent %s callback to %s", payload["status"], url)


def _clamp_ratio(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


__all__ = ["CallbackClient", "TranscodeStatus"]
