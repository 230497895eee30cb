"""
shardgate • codec • Byte maps (permutation cipher)

Derive a 256-entry byte substitution table from a key, invert it, and apply
it to payloads.

Derivation
----------
    digest = SHA-256(seed)
    table  = [0, 1, ..., 255]
    for i in 255 .. 1:
        j = digest[i % len(digest)] % (i + 1)
        swap(table[i], table[j])

The shuffle draws its "randomness" only from the digest, so the same seed
yields the same table on every process and platform. This is reversible
obfuscation, not encryption: a byte map leaks byte frequencies and is
recoverable from modest amounts of known plaintext.

API
---
- ByteMap / InverseByteMap : frozen 256-tuples, bijectivity checked on creation
- derive_byte_map(seed) -> ByteMap
- invert(byte_map) -> InverseByteMap
- apply(byte_map, data) -> bytes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

from ..constants import BYTE_MAP_SIZE
from ..errors import InvalidInput
from ..utils.bytes import BytesLike
from ..utils.hash import fingerprint, sha256

IntSequence = Sequence[int]


@dataclass(frozen=True)
class ByteMap:
    """A bijective byte-to-byte substitution table."""

    table: Tuple[int, ...]
    _translation: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        table = tuple(self.table)
        if len(table) != BYTE_MAP_SIZE:
            raise InvalidInput(
                f"byte map must have {BYTE_MAP_SIZE} entries, got {len(table)}"
            )
        seen = [False] * BYTE_MAP_SIZE
        for i, v in enumerate(table):
            if not isinstance(v, int) or isinstance(v, bool) or not 0 <= v < BYTE_MAP_SIZE:
                raise InvalidInput(f"byte map entry {i} out of range: {v!r}")
            if seen[v]:
                raise InvalidInput(f"byte map is not bijective: {v} appears twice")
            seen[v] = True
        object.__setattr__(self, "table", table)
        object.__setattr__(self, "_translation", bytes(table))

    # --- container protocol ---

    def __len__(self) -> int:
        return BYTE_MAP_SIZE

    def __getitem__(self, b: int) -> int:
        return self.table[b]

    def __iter__(self) -> Iterator[int]:
        return iter(self.table)

    # --- convenience ---

    @property
    def translation(self) -> bytes:
        """256-byte table suitable for `bytes.translate`."""
        return self._translation

    @classmethod
    def from_sequence(cls, values: Iterable[int]) -> "ByteMap":
        return cls(tuple(values))

    def inverse(self) -> "InverseByteMap":
        return invert(self)

    def to_list(self) -> List[int]:
        return list(self.table)

    def fingerprint(self) -> str:
        return fingerprint(self._translation)


@dataclass(frozen=True)
class InverseByteMap(ByteMap):
    """Functional inverse of a ByteMap: inverse[byte_map[i]] == i."""

    def inverse(self) -> ByteMap:  # type: ignore[override]
        return ByteMap(invert(self).table)


# --------------------------------------------------------------------------- #
# Operations
# --------------------------------------------------------------------------- #


def derive_byte_map(seed: BytesLike) -> ByteMap:
    """
    Deterministically derive a ByteMap from `seed` (typically a public key).

    Raises:
      InvalidInput if `seed` is empty.
    """
    if not isinstance(seed, (bytes, bytearray, memoryview)):
        raise InvalidInput(f"seed must be bytes-like, got {type(seed)!r}")
    if len(seed) == 0:
        raise InvalidInput("seed must not be empty")

    digest = sha256(seed)
    table = list(range(BYTE_MAP_SIZE))
    for i in range(BYTE_MAP_SIZE - 1, 0, -1):
        j = digest[i % len(digest)] % (i + 1)
        table[i], table[j] = table[j], table[i]
    return ByteMap(tuple(table))


def invert(byte_map: ByteMap) -> InverseByteMap:
    """Build the inverse table in a single pass."""
    inverse = [0] * BYTE_MAP_SIZE
    for i, v in enumerate(byte_map.table):
        inverse[v] = i
    return InverseByteMap(tuple(inverse))


def apply(byte_map: ByteMap, data: Union[BytesLike, IntSequence]) -> bytes:
    """
    Map each byte `b` of `data` to `byte_map[b]`. Output length == input length.

    `data` may be bytes-like or a sequence of ints (e.g. a decoded JSON array);
    ints outside 0..255 raise InvalidInput.
    """
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).translate(byte_map.translation)
    if isinstance(data, memoryview):
        return data.tobytes().translate(byte_map.translation)

    out = bytearray(len(data))
    table = byte_map.table
    for k, b in enumerate(data):
        if not isinstance(b, int) or isinstance(b, bool) or not 0 <= b < BYTE_MAP_SIZE:
            raise InvalidInput(f"byte at position {k} out of range: {b!r}")
        out[k] = table[b]
    return bytes(out)


__all__ = [
    "ByteMap",
    "InverseByteMap",
    "derive_byte_map",
    "invert",
    "apply",
]
