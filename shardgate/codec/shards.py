"""
shardgate • codec • Shards

Split a payload into fixed-size shards (optionally substituting every byte
through a ByteMap) and join ordered shards back into the payload.

Rules
-----
- `shard_size` must be > 0, otherwise InvalidInput is raised.
- Empty payload -> no shards.
- Every shard is non-empty and at most `shard_size` bytes; only the last may
  be shorter.
- Order matters: `join` concatenates in the order given and does not sort.

    join(split(data, n, m), invert(m)) == data
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generator, Iterable, List, Optional, Union

from ..errors import InvalidInput
from ..utils.bytes import BytesLike, to_bytes
from .bytemap import ByteMap, InverseByteMap, apply


@dataclass(frozen=True)
class Shard:
    """One contiguous (possibly substituted) slice of a larger payload."""
    index: int
    offset: int
    data: bytes
    is_last: bool

    def __len__(self) -> int:
        return len(self.data)


def iter_shards(
    data: BytesLike,
    shard_size: int,
    cipher: Optional[ByteMap] = None,
) -> Generator[Shard, None, None]:
    """
    Yield shards of `data` in order. Slices are taken from a memoryview so the
    only copy made per shard is the (substituted) output bytes.
    """
    if isinstance(shard_size, bool) or not isinstance(shard_size, int) or shard_size <= 0:
        raise InvalidInput(f"shard_size must be a positive integer, got {shard_size!r}")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidInput(f"data must be bytes-like, got {type(data)!r}")

    mv = memoryview(data)
    total = len(mv)
    index = 0
    for offset in range(0, total, shard_size):
        end = min(offset + shard_size, total)
        piece = mv[offset:end]
        payload = apply(cipher, piece) if cipher is not None else piece.tobytes()
        yield Shard(index=index, offset=offset, data=payload, is_last=end >= total)
        index += 1


def split(
    data: BytesLike,
    shard_size: int,
    cipher: Optional[ByteMap] = None,
) -> List[Shard]:
    """Partition `data` into ordered shards of at most `shard_size` bytes."""
    return list(iter_shards(data, shard_size, cipher))


def _shard_bytes(item: Union[Shard, BytesLike, object]) -> bytes:
    if isinstance(item, Shard):
        return item.data
    if isinstance(item, (bytes, bytearray, memoryview)):
        return to_bytes(item)
    # ShardRecord (and anything else carrying a `payload`)
    payload = getattr(item, "payload", None)
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return to_bytes(payload)
    raise InvalidInput(f"cannot join shard of type {type(item)!r}")


def join(
    shards: Iterable[Union[Shard, BytesLike, object]],
    inverse_cipher: Optional[InverseByteMap] = None,
) -> bytes:
    """
    Concatenate shard payloads in the given order, undoing the substitution
    when `inverse_cipher` is supplied.
    """
    parts = [_shard_bytes(s) for s in shards]
    if inverse_cipher is not None:
        parts = [apply(inverse_cipher, p) for p in parts]
    return b"".join(parts)


def shard_count(length: int, shard_size: int) -> int:
    """Number of shards needed to carry `length` bytes."""
    if length < 0 or shard_size <= 0:
        raise InvalidInput("length must be >= 0 and shard_size > 0")
    return (length + shard_size - 1) // shard_size


__all__ = ["Shard", "iter_shards", "split", "join", "shard_count"]
