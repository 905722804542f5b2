from __future__ import annotations

from pathlib import Path

import pytest

VALID_MEDIA_MANIFEST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-PLAYLIST-TYPE:VOD
#EXT-X-TARGETDURATION:5
#EXT-X-MEDIA-SEQUENCE:0
#EXTINF:10.4160000000,
0.ts
#EXTINF:5.3340000000,
5000.ts
#EXT-X-ENDLIST"""

VALID_MASTER_MANIFEST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-INDEPENDENT-SEGMENTS
#EXT-X-STREAM-INF:BANDWIDTH=2665726,AVERAGE-BANDWIDTH=2526299,RESOLUTION=960x540,FRAME-RATE=29.970,CODECS="avc1.640029,mp4a.40.2",SUBTITLES="subtitles"
index_1.m3u8"""


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        *,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
        json_data=None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = dict(headers or {})
        self._json = json_data
        self.closed = False

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json

    def iter_content(self, chunk_size: int = 1):
        for offset in range(0, len(self.content), chunk_size):
            yield self.content[offset : offset + chunk_size]

    def close(self) -> None:
        self.closed = True


class RecordingSession:
    """Stand-in for ``requests.Session`` that records calls and replays responses."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self, method: str, url: str, kwargs: dict):
        data = kwargs.get("data")
        if data is not None and not isinstance(data, (bytes, str)):
            kwargs = dict(kwargs, data=b"".join(data))
        self.calls.append((method, url, kwargs))
        if not self.responses:
            return FakeResponse(200)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url: str, **kwargs):
        return self._next("POST", url, kwargs)

    def put(self, url: str, **kwargs):
        return self._next("PUT", url, kwargs)

    def close(self) -> None:
        return None


@pytest.fixture
def media_manifest_file(tmp_path: Path) -> Path:
    path = tmp_path / "source" / "index.m3u8"
    path.parent.mkdir(parents=True)
    path.write_text(VALID_MEDIA_MANIFEST, encoding="utf-8")
    return path
