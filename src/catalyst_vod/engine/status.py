"""Redis-backed broadcaster for pipeline phase transitions."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import redis
from redis import Redis
from redis.exceptions import RedisError

LOGGER = logging.getLogger(__name__)


class PipelineStatusBroadcaster:
    """Persist the latest phase of each stream and publish every transition."""

    def __init__(
        self,
        *,
        redis_url: Optional[str],
        prefix: str = "catalyst",
        namespace: str = "vod",
        channel: Optional[str] = None,
        ttl_seconds: int = 3600,
    ) -> None:
        self._redis_url = redis_url or ""
        self._prefix = prefix.strip() or "catalyst"
        self._namespace = namespace.strip() or "vod"
        self._channel = channel.strip() if isinstance(channel, str) and channel.strip() else (
            f"{self._prefix}:{self._namespace}:events"
        )
        self._ttl = max(0, int(ttl_seconds))
        self._client: Optional[Redis] = None
        self._last_error: Optional[str] = None
        self._connect()

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    def _connect(self) -> None:
        if not self._redis_url:
            self._last_error = "Redis URL not configured"
            self._client = None
            return
        try:
            client = redis.from_url(
                self._redis_url,
                socket_timeout=3,
                health_check_interval=30,
            )
            client.ping()
        except (RedisError, ValueError) as exc:
            LOGGER.warning("Failed to connect to Redis for status broadcasting: %s", exc)
            self._client = None
            self._last_error = f"Failed to connect to Redis: {exc}"
            return
        self._client = client
        self._last_error = None

    def _ensure_client(self) -> Optional[Redis]:
        client = self._client
        if client is not None:
            return client
        self._connect()
        return self._client

    def _drop_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            client.close()
        except RedisError:
            LOGGER.debug("Error closing Redis status client", exc_info=True)

    def close(self) -> None:
        self._drop_client()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def available(self) -> bool:
        return self._ensure_client() is not None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def publish(self, stream_name: str, phase: str, details: Optional[Mapping[str, Any]] = None) -> None:
        client = self._ensure_client()
        if client is None:
            return
        payload = self._serialize(stream_name, phase, details)
        redis_key = self._redis_key(stream_name)
        try:
            if self._ttl > 0:
                client.set(redis_key, payload, ex=self._ttl)
            else:
                client.set(redis_key, payload)
            client.publish(self._channel, payload)
            self._last_error = None
        except RedisError as exc:
            self._last_error = f"Failed to publish pipeline status: {exc}"
            LOGGER.debug("Failed to publish pipeline status to Redis: %s", exc)
            self._drop_client()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _redis_key(self, stream_name: str) -> str:
        return f"{self._prefix}:{self._namespace}:{stream_name}"

    @staticmethod
    def _serialize(stream_name: str, phase: str, details: Optional[Mapping[str, Any]]) -> str:
        payload = {
            "stream_name": stream_name,
            "phase": phase,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "details": dict(details or {}),
        }
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


__all__ = ["PipelineStatusBroadcaster"]
