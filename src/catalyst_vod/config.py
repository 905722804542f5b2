"""Configuration helpers for the catalyst-vod service."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from .utils import coerce_int


def _ensure_dotenv_loaded() -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


_ensure_dotenv_loaded()

PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOGGER = logging.getLogger(__name__)

MAX_SEGMENT_SIZE_SECS = 20


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    trimmed = value.strip()
    return trimmed or default


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = coerce_int(raw.strip(), default)
    if value < minimum:
        LOGGER.warning("Ignoring %s=%r; using %d", name, raw, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Ignoring %s=%r; using %s", name, raw, default)
        return default
    return value if value > 0 else default


def build_default_config() -> Dict[str, Any]:
    """Return the base configuration mapping for the service."""

    segment_size = _env_int("CATALYST_SEGMENT_SIZE_SECS", 10, minimum=1)
    if segment_size > MAX_SEGMENT_SIZE_SECS:
        LOGGER.warning(
            "CATALYST_SEGMENT_SIZE_SECS=%d exceeds %d; capping",
            segment_size,
            MAX_SEGMENT_SIZE_SECS,
        )
        segment_size = MAX_SEGMENT_SIZE_SECS

    cfg: Dict[str, Any] = {
        "CATALYST_BROADCASTER_URL": _env_str("CATALYST_BROADCASTER_URL", "http://127.0.0.1:8935"),
        "CATALYST_MIST_API_URL": _env_str("CATALYST_MIST_API_URL", "http://127.0.0.1:4242/api2"),
        "CATALYST_MIST_HTTP_URL": _env_str("CATALYST_MIST_HTTP_URL", "http://127.0.0.1:8080"),
        "CATALYST_TRIGGER_CALLBACK_URL": _env_str(
            "CATALYST_TRIGGER_CALLBACK_URL", "http://127.0.0.1:7000/api/mist/trigger"
        ),
        "CATALYST_TRANSCODE_TIMEOUT_SECONDS": _env_float("CATALYST_TRANSCODE_TIMEOUT_SECONDS", 180.0),
        "CATALYST_API_TIMEOUT_SECONDS": _env_float("CATALYST_API_TIMEOUT_SECONDS", 10.0),
        "CATALYST_TRANSCODE_PARALLEL_JOBS": _env_int("CATALYST_TRANSCODE_PARALLEL_JOBS", 2, minimum=1),
        "CATALYST_MAX_JOBS_IN_FLIGHT": _env_int("CATALYST_MAX_JOBS_IN_FLIGHT", 8, minimum=1),
        "CATALYST_RUN_HISTORY": _env_int("CATALYST_RUN_HISTORY", 256, minimum=1),
        "CATALYST_SEGMENT_SIZE_SECS": segment_size,
        "CATALYST_DURATION_TOLERANCE_MS": _env_int("CATALYST_DURATION_TOLERANCE_MS", 500),
        "CATALYST_STATUS_REDIS_URL": _env_str("CATALYST_STATUS_REDIS_URL", None),
        "CATALYST_STATUS_PREFIX": _env_str("CATALYST_STATUS_PREFIX", "catalyst"),
        "CATALYST_STATUS_NAMESPACE": _env_str("CATALYST_STATUS_NAMESPACE", "vod"),
        "CATALYST_STATUS_TTL_SECONDS": _env_int("CATALYST_STATUS_TTL_SECONDS", 3600),
        "CATALYST_CORS_ORIGIN": _env_str("CATALYST_CORS_ORIGIN", "*"),
        "CATALYST_LOG_DIR": _env_str("CATALYST_LOG_DIR", str(PROJECT_ROOT / "logs")),
    }
    return cfg


__all__ = ["MAX_SEGMENT_SIZE_SECS", "PROJECT_ROOT", "build_default_config"]
