"""
shardgate • keystore

An explicit, in-process key store. The gateway receives one by reference and
asks it for public keys and addresses; nothing in the package keeps keys in
module-level state.

Addresses are derived by an injectable function. The default is
"0x" + SHA3-256(public_key) hex, which is what the in-memory ledger uses; an
embedder talking to a real ledger passes that ledger's address constructor.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from .errors import InvalidInput, NotFound
from .utils.bytes import BytesLike, to_bytes
from .utils.hash import sha3_256_hex

AddressFn = Callable[[bytes], str]


def default_address(public_key: bytes) -> str:
    return sha3_256_hex(public_key)


class InMemoryKeyStore:
    """
    Ordered collection of public keys. The first key added is the default
    key for pushes.
    """

    def __init__(
        self,
        public_keys: Iterable[BytesLike] = (),
        *,
        address_fn: AddressFn = default_address,
    ) -> None:
        self._address_fn = address_fn
        self._keys: List[bytes] = []
        self._by_address: Dict[str, bytes] = {}
        for pk in public_keys:
            self.add(pk)

    def add(self, public_key: BytesLike) -> str:
        """Register `public_key` (idempotent); return its address."""
        pk = to_bytes(public_key)
        if not pk:
            raise InvalidInput("public key must not be empty")
        address = self._address_fn(pk)
        if address not in self._by_address:
            self._keys.append(pk)
            self._by_address[address] = pk
        return address

    def public_keys(self) -> List[bytes]:
        return list(self._keys)

    def address_of(self, public_key: bytes) -> str:
        return self._address_fn(to_bytes(public_key))

    def public_key_for(self, address: str) -> Optional[bytes]:
        return self._by_address.get(address)

    def default_key(self) -> bytes:
        if not self._keys:
            raise NotFound("key store is empty")
        return self._keys[0]

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, public_key: object) -> bool:
        if not isinstance(public_key, (bytes, bytearray, memoryview)):
            return False
        return self.address_of(to_bytes(public_key)) in self._by_address


__all__ = ["AddressFn", "default_address", "InMemoryKeyStore"]
