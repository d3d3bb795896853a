"""Human-shareable quote reference numbers."""

from __future__ import annotations

import secrets
import string
import time

_BASE36 = string.digits + string.ascii_lowercase
SUFFIX_LENGTH = 6


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_quote_id(now_ms: int | None = None) -> str:
    """``CMF-<base36 ms timestamp>-<6 random base36 chars>``, upper-case.

    Uniqueness is probabilistic: two ids minted in the same millisecond
    collide only if their random suffixes match (1 in 36**6).
    """
    timestamp = to_base36(now_ms if now_ms is not None else int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(SUFFIX_LENGTH))
    return f"CMF-{timestamp}-{suffix}".upper()
