"""HTTP routes that feed media server triggers and job requests to the pipeline."""
from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Mapping, Optional

from flask import Blueprint, current_app, jsonify, request

from ..engine import PipelineController, PushTranscodeRequest, VodRequest
from ..exceptions import MistClientError, PayloadParseError
from ..video import EncodedProfile

api_bp = Blueprint("catalyst_api", __name__)

CONTROLLER_KEY = "pipeline_controller"


def _controller() -> PipelineController:
    return current_app.extensions[CONTROLLER_KEY]


def _error(message: str, status: HTTPStatus, **details: Any):
    payload: dict[str, Any] = {"error": message}
    payload.update(details)
    return jsonify(payload), status


def _required_str(body: Mapping[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must be a non-empty string")
    return value.strip()


def _optional_str(body: Mapping[str, Any], key: str) -> str:
    value = body.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value.strip()


def _upload_url(body: Mapping[str, Any]) -> str:
    locations = body.get("output_locations")
    if not isinstance(locations, list) or not locations:
        raise ValueError("'output_locations' must be a non-empty list")
    chosen: Optional[Mapping[str, Any]] = None
    for location in locations:
        if not isinstance(location, Mapping):
            raise ValueError("each output location must be an object")
        if location.get("type") == "object_store":
            chosen = location
            break
    if chosen is None:
        chosen = locations[0]
    return _required_str(chosen, "url")


def _profiles(body: Mapping[str, Any]) -> tuple[EncodedProfile, ...]:
    raw = body.get("profiles")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("'profiles' must be a list")
    profiles = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValueError("each profile must be an object")
        profiles.append(EncodedProfile.from_mapping(item))
    return tuple(profiles)


@api_bp.route("/api/mist/trigger", methods=["POST"])
def mist_trigger_endpoint():
    trigger = (request.headers.get("X-Trigger") or "").strip().upper()
    payload = request.get_data(as_text=True)
    controller = _controller()
    handlers = {
        "RECORDING_END": controller.handle_recording_end,
        "PUSH_END": controller.handle_push_end,
    }
    handler = handlers.get(trigger)
    if handler is None:
        return _error(f"unsupported trigger {trigger or '<missing>'}", HTTPStatus.BAD_REQUEST)
    try:
        outcome = handler(payload)
    except PayloadParseError as exc:
        current_app.logger.warning("Rejected %s trigger: %s", trigger, exc)
        return _error(f"Error parsing {trigger} payload", HTTPStatus.BAD_REQUEST, details=str(exc))
    return jsonify({"trigger": trigger, "outcome": outcome.value}), HTTPStatus.OK


@api_bp.route("/api/vod", methods=["POST"])
def vod_endpoint():
    body = request.get_json(silent=True)
    if not isinstance(body, Mapping):
        return _error("request body must be a JSON object", HTTPStatus.BAD_REQUEST)
    try:
        vod_request = VodRequest(
            source_url=_required_str(body, "url"),
            callback_url=_required_str(body, "callback_url"),
            upload_url=_upload_url(body),
            access_token=_optional_str(body, "access_token"),
            transcode_api_url=_optional_str(body, "transcode_api_url"),
            profiles=_profiles(body),
        )
    except ValueError as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    try:
        stream_name = _controller().start_vod(vod_request)
    except MistClientError as exc:
        current_app.logger.error("Failed to start segmenting %s: %s", vod_request.source_url, exc)
        return _error("failed to start segmenting", HTTPStatus.BAD_GATEWAY, details=str(exc))
    return jsonify({"stream_name": stream_name}), HTTPStatus.ACCEPTED


@api_bp.route("/api/transcode/file", methods=["POST"])
def transcode_file_endpoint():
    body = request.get_json(silent=True)
    if not isinstance(body, Mapping):
        return _error("request body must be a JSON object", HTTPStatus.BAD_REQUEST)
    destinations = body.get("destinations")
    if (
        not isinstance(destinations, list)
        or not destinations
        or not all(isinstance(item, str) and item.strip() for item in destinations)
    ):
        return _error("'destinations' must be a non-empty list of strings", HTTPStatus.BAD_REQUEST)
    try:
        push_request = PushTranscodeRequest(
            source_url=_required_str(body, "url"),
            callback_url=_required_str(body, "callback_url"),
            destinations=tuple(item.strip() for item in destinations),
        )
    except ValueError as exc:
        return _error(str(exc), HTTPStatus.BAD_REQUEST)
    try:
        stream_name = _controller().start_push_transcode(push_request)
    except MistClientError as exc:
        current_app.logger.error("Failed to start pushing %s: %s", push_request.source_url, exc)
        return _error("failed to start transcode push", HTTPStatus.BAD_GATEWAY, details=str(exc))
    return jsonify({"stream_name": stream_name}), HTTPStatus.ACCEPTED


@api_bp.route("/api/runs/<string:stream_name>", methods=["GET"])
def run_status_endpoint(stream_name: str):
    payload = _controller().describe(stream_name)
    if payload is None:
        return _error(f"unknown stream {stream_name}", HTTPStatus.NOT_FOUND)
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/health", methods=["GET"])
def health_endpoint():
    payload = {
        "status": "ok",
        "service": "catalyst-vod",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "broadcaster_url": current_app.config.get("CATALYST_BROADCASTER_URL"),
        "parallel_jobs": current_app.config.get("CATALYST_TRANSCODE_PARALLEL_JOBS"),
    }
    return jsonify(payload), HTTPStatus.OK


@api_bp.route("/ok", methods=["GET"])
def ok_endpoint():
    return "OK", HTTPStatus.OK, {"Content-Type": "text/plain; charset=utf-8"}


__all__ = ["CONTROLLER_KEY", "api_bp"]
