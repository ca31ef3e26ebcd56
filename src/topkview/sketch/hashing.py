"""Sketch hashing - fingerprints and per-row bucket placement.

Both hashes are derived from BLAKE2s so they are stable across processes
(unlike the builtin ``hash`` which is salted per interpreter).
"""

from __future__ import annotations

import hashlib

_FINGERPRINT_PERSON = b"tkv-fp"


def fingerprint(label: str) -> int:
    """Return the 32-bit fingerprint stored in buckets owned by ``label``."""
    digest = hashlib.blake2s(
        label.encode("utf-8"), digest_size=4, person=_FINGERPRINT_PERSON
    ).digest()
    return int.from_bytes(digest, "little")


def bucket_index(label: str, row: int, width: int) -> int:
    """Return the flat bucket index of ``label`` in hash row ``row``.

    Buckets are stored row-major, so row ``r`` occupies
    ``[r * width, (r + 1) * width)``.
    """
    digest = hashlib.blake2s(
        label.encode("utf-8"), digest_size=8, salt=row.to_bytes(8, "little")
    ).digest()
    return row * width + int.from_bytes(digest, "little") % width


__all__ = ["fingerprint", "bucket_index"]
