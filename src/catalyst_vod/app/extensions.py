"""Extension wiring for the catalyst-vod Flask application."""
from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, Response, g, request

from ..cache import StreamCache
from ..clients import CallbackClient, LocalBroadcasterClient, MistClient, ObjectStorage
from ..engine import PipelineController, PipelineStatusBroadcaster
from ..routes import CONTROLLER_KEY, api_bp
from ..transcode import TranscodeProcess

LOGGER = logging.getLogger("catalyst_vod.requests")

STATUS_BROADCASTER_KEY = "pipeline_status_broadcaster"


def init_status_broadcaster(app: Flask) -> Optional[PipelineStatusBroadcaster]:
    redis_url = app.config.get("CATALYST_STATUS_REDIS_URL")
    if not redis_url:
        return None
    status_broadcaster = PipelineStatusBroadcaster(
        redis_url=redis_url,
        prefix=app.config.get("CATALYST_STATUS_PREFIX", "catalyst"),
        namespace=app.config.get("CATALYST_STATUS_NAMESPACE", "vod"),
        ttl_seconds=int(app.config.get("CATALYST_STATUS_TTL_SECONDS", 3600) or 0),
    )
    if not status_broadcaster.available:
        LOGGER.warning(
            "Pipeline status broadcasting disabled: %s",
            status_broadcaster.last_error or "Redis unavailable",
        )
    app.extensions[STATUS_BROADCASTER_KEY] = status_broadcaster
    return status_broadcaster


def init_pipeline_controller(
    app: Flask,
    *,
    status_broadcaster: Optional[PipelineStatusBroadcaster] = None,
) -> PipelineController:
    api_timeout = float(app.config.get("CATALYST_API_TIMEOUT_SECONDS", 10.0))
    storage = ObjectStorage(timeout=api_timeout)
    broadcaster = LocalBroadcasterClient(
        app.config["CATALYST_BROADCASTER_URL"],
        timeout=float(app.config.get("CATALYST_TRANSCODE_TIMEOUT_SECONDS", 180.0)),
    )
    mist = MistClient(
        app.config["CATALYST_MIST_API_URL"],
        app.config["CATALYST_MIST_HTTP_URL"],
        app.config["CATALYST_TRIGGER_CALLBACK_URL"],
        timeout=api_timeout,
    )
    controller = PipelineController(
        StreamCache(),
        mist,
        CallbackClient(timeout=api_timeout),
        TranscodeProcess(
            broadcaster,
            storage,
            parallel_jobs=int(app.config.get("CATALYST_TRANSCODE_PARALLEL_JOBS", 2)),
        ),
        max_runs=int(app.config.get("CATALYST_MAX_JOBS_IN_FLIGHT", 8)),
        run_history=int(app.config.get("CATALYST_RUN_HISTORY", 256)),
        duration_tolerance_ms=int(app.config.get("CATALYST_DURATION_TOLERANCE_MS", 500)),
        segment_size_secs=int(app.config.get("CATALYST_SEGMENT_SIZE_SECS", 10)),
        status_broadcaster=status_broadcaster,
    )
    app.extensions[CONTROLLER_KEY] = controller
    return controller


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(api_bp)


def configure_cors(app: Flask, cors_origin: str | None) -> None:
    allowed_default = cors_origin or "*"

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        allowed_origin = allowed_default
        if allowed_default == "*" and origin:
            allowed_origin = origin
        response.headers["Access-Control-Allow-Origin"] = allowed_origin
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type, X-Trigger")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET,POST,OPTIONS")
        if origin:
            response.headers.add("Vary", "Origin")
        return response


def configure_request_logging(app: Flask) -> None:
    @app.before_request
    def _start_timer() -> None:
        g.request_started = time.monotonic()

    @app.after_request
    def _log_request(response: Response) -> Response:
        started = g.get("request_started")
        elapsed_ms = (time.monotonic() - started) * 1000.0 if started is not None else 0.0
        LOGGER.info(
            "%s %s %d %sB %.1fms %s",
            request.method,
            request.path,
            response.status_code,
            response.calculate_content_length() or 0,
            elapsed_ms,
            request.remote_addr or "-",
        )
        return response


__all__ = [
    "CONTROLLER_KEY",
    "STATUS_BROADCASTER_KEY",
    "configure_cors",
    "configure_request_logging",
    "init_pipeline_controller",
    "init_status_broadcaster",
    "register_blueprints",
]
