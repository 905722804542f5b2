"""URL manipulation helpers."""
from __future__ import annotations


def strip_trailing_slash(url: str) -> str:
    trimmed = (url or "").strip()
    while trimmed.endswith("/"):
        trimmed = trimmed[:-1]
    return trimmed


__all__ = ["strip_trailing_slash"]
