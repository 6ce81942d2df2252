"""Random challenge material."""

from __future__ import annotations

import secrets

RANDOM_MAX_LEN = 32


def generate_random(length: int) -> bytes:
    """Return cryptographically strong random bytes, at most RANDOM_MAX_LEN of them."""
    if length < 0:
        raise ValueError("length must not be negative")
    return secrets.token_bytes(min(length, RANDOM_MAX_LEN))