"""catalyst-vod application factory."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from .bootstrap import init_logging, load_configuration
from .extensions import (
    configure_cors,
    configure_request_logging,
    init_pipeline_controller,
    init_status_broadcaster,
    register_blueprints,
)


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Create and configure the catalyst-vod Flask application."""

    app = Flask(__name__)
    load_configuration(app, overrides)
    init_logging(app)

    status_broadcaster = init_status_broadcaster(app)
    init_pipeline_controller(app, status_broadcaster=status_broadcaster)

    register_blueprints(app)
    configure_cors(app, app.config.get("CATALYST_CORS_ORIGIN", "*"))
    configure_request_logging(app)

    return app


__all__ = ["create_app"]
