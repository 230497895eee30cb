"""
shardgate utilities — Hashing helpers

Thin wrappers around hashlib:

  • sha256       — seed digest for byte-map derivation (must stay SHA-256 so
                   maps derived here match maps derived by other gateway clients)
  • sha3_256_hex — content refs in the in-memory ledger and default key addresses
  • fingerprint  — short hex tag for logs
"""

from __future__ import annotations

from hashlib import sha256 as _sha256
from hashlib import sha3_256 as _sha3_256

from .bytes import BytesLike, to_bytes


def sha256(data: BytesLike) -> bytes:
    """Return SHA-256(bytes(data))."""
    return _sha256(to_bytes(data)).digest()


def sha3_256_hex(data: BytesLike) -> str:
    """Return '0x' + lowercase hex of SHA3-256(bytes(data))."""
    return "0x" + _sha3_256(to_bytes(data)).hexdigest()


def fingerprint(data: BytesLike, *, length: int = 8) -> str:
    """First `length` hex chars of SHA3-256(data); for logs, never for identity."""
    return _sha3_256(to_bytes(data)).hexdigest()[:length]


__all__ = ["sha256", "sha3_256_hex", "fingerprint"]
