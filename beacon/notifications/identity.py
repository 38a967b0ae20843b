"""
Notification identities — stable integer ids for tray entries.

An identity is a pure function of ``(entity_id, purpose)``, so scheduling the
same logical notification again reuses its id and cancelling needs no stored
state. The hash is CRC-32: deterministic across processes and platforms, but
NOT cryptographic, and distinct pairs can collide. That is acceptable for a
single device's tray.

Python's built-in ``hash()`` is salted per process and must not be used here.
"""

from __future__ import annotations

import zlib

SEPARATOR = "\x1f"  # ASCII unit separator; never appears in normal ids
ZERO_SALT = b"beacon:nonzero:"
SENTINEL_ID = 0x5EED  # last resort when both hashes land on 0

# Android notification ids are signed 32-bit ints; keep them positive.
_MASK = 0x7FFFFFFF

RESERVED_ID = 0

# Purpose tags used by the built-in flows
PURPOSE_BEFORE = "before"
PURPOSE_DEADLINE = "deadline"
PURPOSE_DEFAULT = "default"


def derive_id(entity_id: str, purpose: str) -> int:
    """
    Identity for one logical notification.

    Never returns 0: a zero hash is re-hashed with ``ZERO_SALT`` and, if that
    is also zero, replaced by ``SENTINEL_ID``.
    """
    key = f"{entity_id}{SEPARATOR}{purpose}".encode("utf-8")
    value = zlib.crc32(key) & _MASK
    if value == RESERVED_ID:
        value = (zlib.crc32(ZERO_SALT + key) & _MASK) or SENTINEL_ID
    return value
