"""
Connection identifiers.

An identifier combines the accept time in epoch milliseconds with a short
random base36 suffix, e.g. ``client_1718000000000_k3x9q0z1a``. Two
connections accepted in the same millisecond collide only if they also draw
the same 9 random characters (36**9 possibilities). Identifiers are opaque
labels, not secrets.
"""

import random
import string
import time
from typing import Final

__all__ = ["generate_client_id", "CLIENT_ID_PREFIX"]

CLIENT_ID_PREFIX: Final[str] = "client"

_ALPHABET: Final[str] = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH: Final[int] = 9


def generate_client_id() -> str:
    """Return a new connection identifier."""
    millis = time.time_ns() // 1_000_000
    suffix = "".join(random.choices(_ALPHABET, k=_SUFFIX_LENGTH))
    return f"{CLIENT_ID_PREFIX}_{millis}_{suffix}"
