from __future__ import annotations

import pytest

from catalyst_vod.config import build_default_config


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CATALYST_BROADCASTER_URL",
        "CATALYST_TRANSCODE_PARALLEL_JOBS",
        "CATALYST_SEGMENT_SIZE_SECS",
        "CATALYST_STATUS_REDIS_URL",
        "CATALYST_DURATION_TOLERANCE_MS",
        "CATALYST_RUN_HISTORY",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = build_default_config()

    assert cfg["CATALYST_BROADCASTER_URL"] == "http://127.0.0.1:8935"
    assert cfg["CATALYST_TRANSCODE_PARALLEL_JOBS"] == 2
    assert cfg["CATALYST_SEGMENT_SIZE_SECS"] == 10
    assert cfg["CATALYST_DURATION_TOLERANCE_MS"] == 500
    assert cfg["CATALYST_STATUS_REDIS_URL"] is None
    assert cfg["CATALYST_RUN_HISTORY"] == 256


def test_environment_overrides_and_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALYST_TRANSCODE_PARALLEL_JOBS", "6")
    monkeypatch.setenv("CATALYST_MAX_JOBS_IN_FLIGHT", "many")
    monkeypatch.setenv("CATALYST_SEGMENT_SIZE_SECS", "45")
    monkeypatch.setenv("CATALYST_TRANSCODE_TIMEOUT_SECONDS", "-1")

    cfg = build_default_config()

    assert cfg["CATALYST_TRANSCODE_PARALLEL_JOBS"] == 6
    assert cfg["CATALYST_MAX_JOBS_IN_FLIGHT"] == 8
    assert cfg["CATALYST_SEGMENT_SIZE_SECS"] == 20
    assert cfg["CATALYST_TRANSCODE_TIMEOUT_SECONDS"] == 180.0
