"""HTTP routes for the catalyst-vod service."""
from __future__ import annotations

from .api import CONTROLLER_KEY, api_bp

__all__ = ["CONTROLLER_KEY", "api_bp"]
