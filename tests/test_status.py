from __future__ import annotations

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from catalyst_vod.engine import status as status_module
from catalyst_vod.engine.status import PipelineStatusBroadcaster


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, tuple[str, int | None]] = {}
        self.published: list[tuple[str, str]] = []
        self.closed = False

    def ping(self) -> bool:
        return True

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.values[key] = (value, ex)

    def publish(self, channel: str, value: str) -> None:
        self.published.append((channel, value))

    def close(self) -> None:
        self.closed = True


def test_publish_persists_and_broadcasts(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeRedis()
    monkeypatch.setattr(status_module.redis, "from_url", lambda url, **kwargs: fake)

    broadcaster = PipelineStatusBroadcaster(redis_url="redis://localhost/0", ttl_seconds=60)
    broadcaster.publish("catalyst_vod_x", "transcoding")

    value, ttl = fake.values["catalyst:vod:catalyst_vod_x"]
    assert ttl == 60
    assert json.loads(value)["phase"] == "transcoding"
    assert fake.published[0][0] == "catalyst:vod:events"


def test_unreachable_redis_disables_broadcasting(monkeypatch: pytest.MonkeyPatch) -> None:
    def _refuse(url, **kwargs):
        raise RedisConnectionError("refused")

    monkeypatch.setattr(status_module.redis, "from_url", _refuse)

    broadcaster = PipelineStatusBroadcaster(redis_url="redis://localhost/0")
    broadcaster.publish("catalyst_vod_x", "failed")

    assert broadcaster.available is False
    assert "refused" in (broadcaster.last_error or "")


def test_missing_url_is_a_no_op() -> None:
    broadcaster = PipelineStatusBroadcaster(redis_url=None)
    broadcaster.publish("catalyst_vod_x", "completed")
    assert broadcaster.available is False
