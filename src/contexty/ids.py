"""Time-ordered identifiers for parts, sessions, messages and tool calls.

Ids look like ``prt_0190c6f1a2b3XyZ...``: a semantic prefix, the creation
time in milliseconds as 12 zero-padded hex digits, then 14 random
alphanumeric characters.  Ids created later sort after ids created
earlier (at millisecond granularity).
"""

from __future__ import annotations

import secrets
import string
import time

PART_PREFIX = "prt"
SESSION_PREFIX = "ses"
MESSAGE_PREFIX = "msg"
CALL_PREFIX = "call"

_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
_RANDOM_LENGTH = 14
_TIME_WIDTH = 12


def generate_id(prefix: str, *, now_ms: int | None = None) -> str:
    """Return a new ``{prefix}_{timeHex}{random}`` identifier."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    time_hex = format(now_ms, "x").zfill(_TIME_WIDTH)
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(_RANDOM_LENGTH))
    return f"{prefix}_{time_hex}{random_part}"


def generate_item_id() -> str:
    """Return an ``fc_`` item id: 25 random bytes as 50 hex chars."""
    return f"fc_{secrets.token_hex(25)}"
