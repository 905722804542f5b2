"""Utility helpers shared across the catalyst-vod service."""
from __future__ import annotations

from .coerce import coerce_int
from .strings import random_trailer, truncate_for_error
from .urls import strip_trailing_slash

__all__ = [
    "coerce_int",
    "random_trailer",
    "truncate_for_error",
    "strip_trailing_slash",
]
