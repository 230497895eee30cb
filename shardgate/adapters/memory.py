"""
shardgate • adapters • In-memory ledger

A process-local ledger implementing both RecordPersister and ItemDiscoverer.
Used by tests and local tooling.

Refs are SHA3-256 over (sequence number, encoded metadata), so identical
records persisted twice still get distinct refs, like transactions would.
Records are owned by `owner_address` when set, else by `default_address`.

Failure injection:
  fail_after=N      the (N+1)-th persist call and every later one raises
  fail_discover=... set of addresses whose discover call raises
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence

from ..codec.records import Record, encode_metadata
from ..errors import ExternalServiceError
from ..interfaces import DiscoveryResult, RawItem
from ..utils.hash import sha3_256_hex


class InMemoryLedger:
    def __init__(
        self,
        *,
        default_address: str = "0x" + "00" * 32,
        fail_after: Optional[int] = None,
        fail_discover: Iterable[str] = (),
    ) -> None:
        self.default_address = default_address
        self.fail_after = fail_after
        self.fail_discover = set(fail_discover)
        self.persist_calls = 0
        self.discover_calls = 0
        self._items: Dict[str, Dict[str, RawItem]] = {}

    # --- RecordPersister

    async def persist(self, record: Record, *, amount: int = 1) -> str:
        self.persist_calls += 1
        if self.fail_after is not None and self.persist_calls > self.fail_after:
            raise ExternalServiceError(
                "ledger unavailable",
                data={"call": self.persist_calls},
            )
        metadata = encode_metadata(record)
        ref = sha3_256_hex(f"{self.persist_calls}:{metadata}".encode("utf-8"))
        address = record.owner_address or self.default_address
        self._items.setdefault(address, {})[ref] = RawItem(
            amount=amount, metadata=metadata, address=address
        )
        return ref

    # --- ItemDiscoverer

    async def discover(self, addresses: Sequence[str]) -> DiscoveryResult:
        self.discover_calls += 1
        out: DiscoveryResult = {}
        for address in addresses:
            if address in self.fail_discover:
                raise ExternalServiceError("discovery failed", data={"address": address})
            out[address] = dict(self._items.get(address, {}))
        return out

    # --- test helpers

    def put_raw(self, address: str, ref: str, metadata: object, *, amount: int = 1) -> None:
        """Insert an arbitrary item (e.g. unrelated or malformed metadata)."""
        self._items.setdefault(address, {})[ref] = RawItem(
            amount=amount, metadata=metadata, address=address  # type: ignore[arg-type]
        )

    def drop(self, address: str, ref: str) -> None:
        self._items.get(address, {}).pop(ref, None)

    def items(self, address: str) -> Dict[str, RawItem]:
        return dict(self._items.get(address, {}))


__all__ = ["InMemoryLedger"]
