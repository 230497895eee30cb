"""
shardgate • interfaces

Narrow contracts for the collaborators the gateway consumes. Anything that
implements these structurally can be plugged in (see `shardgate.adapters`
for an in-memory and an HTTP ledger).

    RecordPersister.persist(record)     -> self_ref        (async)
    ItemDiscoverer.discover(addresses)  -> {address: {self_ref: RawItem}}  (async)
    KeyStore                            -> public keys and their addresses

Collaborator failures are opaque to the core: adapters raise
ExternalServiceError (or let their own exceptions escape, which the gateway
wraps) and never retry on the core's behalf.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from .codec.records import Record


@dataclass(frozen=True)
class RawItem:
    """
    One ledger item as returned by discovery, before its metadata is parsed.

      • amount   — amount held
      • metadata — JSON text or an already-decoded object
      • address  — address the item was found under
    """
    amount: int
    metadata: Union[str, Mapping[str, Any], None]
    address: str


DiscoveryResult = Dict[str, Dict[str, RawItem]]


@runtime_checkable
class RecordPersister(Protocol):
    async def persist(self, record: Record, *, amount: int = 1) -> str:
        """Persist `record`; return the ref the store assigned to it."""
        ...


@runtime_checkable
class ItemDiscoverer(Protocol):
    async def discover(self, addresses: Sequence[str]) -> DiscoveryResult:
        """Return every item held by each of `addresses`, keyed by ref."""
        ...


@runtime_checkable
class KeyStore(Protocol):
    def public_keys(self) -> List[bytes]:
        ...

    def address_of(self, public_key: bytes) -> str:
        ...

    def public_key_for(self, address: str) -> Optional[bytes]:
        ...


__all__ = [
    "RawItem",
    "DiscoveryResult",
    "RecordPersister",
    "ItemDiscoverer",
    "KeyStore",
]
