"""String helper utilities shared across the catalyst-vod service."""
from __future__ import annotations

import secrets
import string

_TRAILER_ALPHABET = string.ascii_lowercase


def random_trailer(length: int = 8) -> str:
    """Return a random lowercase suffix used to build unique stream names."""

    return "".join(secrets.choice(_TRAILER_ALPHABET) for _ in range(max(1, length)))


def truncate_for_error(text: str, *, limit: int = 10_000) -> str:
    # Bodies end up in logs and callbacks.
    if len(text) > limit:
        return "<Too long to include in error>"
    return text


__all__ = ["random_trailer", "truncate_for_error"]
