"""
shardgate utilities — Byte helpers

Normalization of bytes-like inputs to immutable `bytes`.
"""
from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


def to_bytes(data: BytesLike) -> bytes:
    """
    Normalize any supported bytes-like input into a plain `bytes` object.
    """
    if isinstance(data, bytes):
        return data
    if isinstance(data, bytearray):
        return bytes(data)
    if isinstance(data, memoryview):
        return data.tobytes()
    raise TypeError(f"expected bytes-like object, got {type(data)!r}")


__all__ = ["BytesLike", "to_bytes"]
