"""Deterministic object identifiers derived from human-readable names.

An identifier is the 64-bit FNV-1a hash of the UTF-8 encoded name, rendered as
16 lowercase hex digits and right-padded with ``"0"`` to 24 characters, the
width of a store-native object id. Identifiers are logical keys, not security
tokens: collisions are possible.
"""

from __future__ import annotations

import re
from typing import Final

OBJECT_ID_LENGTH: Final[int] = 24

_FNV1A_64_OFFSET_BASIS: Final[int] = 0xCBF29CE484222325
_FNV1A_64_PRIME: Final[int] = 0x100000001B3
_UINT64_MASK: Final[int] = 0xFFFFFFFFFFFFFFFF

_OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def fnv1a_64(data: bytes) -> int:
    """Compute the 64-bit FNV-1a hash of ``data``."""
    h = _FNV1A_64_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * _FNV1A_64_PRIME) & _UINT64_MASK
    return h


def derive_object_id(name: str) -> str:
    """Derive the 24-character object identifier for a name.

    Args:
        name: Any string, including the empty string.

    Returns:
        Lowercase hex identifier, exactly ``OBJECT_ID_LENGTH`` characters.

    Example:
        >>> derive_object_id("a")
        'af63dc4c8601ec8c00000000'
    """
    digest = format(fnv1a_64(name.encode("utf-8")), "016x")
    return digest.ljust(OBJECT_ID_LENGTH, "0")


def is_object_id(value: object) -> bool:
    """Return True if ``value`` is a 24-character hex string."""
    return isinstance(value, str) and bool(_OBJECT_ID_PATTERN.match(value))


__all__ = [
    "OBJECT_ID_LENGTH",
    "derive_object_id",
    "fnv1a_64",
    "is_object_id",
]
