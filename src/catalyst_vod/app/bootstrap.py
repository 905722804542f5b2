"""Bootstrap helpers for the catalyst-vod Flask application."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask

from ..config import build_default_config
from ..logging_config import configure_logging


def load_configuration(app: Flask, overrides: Optional[Mapping[str, Any]] = None) -> None:
    """Populate the default configuration values on the Flask app."""

    app.config.from_mapping(build_default_config())
    if overrides:
        app.config.from_mapping(dict(overrides))


def init_logging(app: Flask) -> None:
    log_dir = app.config.get("CATALYST_LOG_DIR")
    configure_logging("catalyst-vod", log_dir=Path(log_dir) if log_dir else None)


__all__ = ["init_logging", "load_configuration"]
