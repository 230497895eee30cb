"""
shardgate utilities.

- shardgate.utils.hash  — SHA-256 / SHA3-256 wrappers and short fingerprints
- shardgate.utils.bytes — bytes-like normalization
"""

from __future__ import annotations

from .bytes import BytesLike, to_bytes
from .hash import fingerprint, sha256, sha3_256_hex

__all__ = [
    "BytesLike",
    "to_bytes",
    "sha256",
    "sha3_256_hex",
    "fingerprint",
]
