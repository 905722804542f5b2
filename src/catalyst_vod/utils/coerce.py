"""Coercion helpers for loosely typed configuration values."""
from __future__ import annotations

from typing import Any


def coerce_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


__all__ = ["coerce_int"]
