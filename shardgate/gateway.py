"""
shardgate • gateway

High-level push/pull over a ledger.

Push
----
    key  = key_store default (or the key given)
    map  = derive_byte_map(key)
    for shard in split(data, max_shard_size, map):           # in order
        ref = await persister.persist(ShardRecord(group_id, prev_ref=ref, ...))

Persisting is a strict pipeline: each record's prev_ref is the ref the store
returned for the previous one, so shards of one group are never persisted in
parallel. Independent groups are (`push_many`). When a persist call fails the
push stops; the records already persisted stay where they are and the error
lists them. Nothing is rolled back.

Pull
----
    items   = await discover_records(discoverer, addresses of the keys)
    records = reconstruct_chain(items, group_id)
    data    = join(records, inverse map of the key that owns the chain head)

An absent group pulls as None. A truncated push pulls as a DataIntegrity
failure, unless only the tail was lost, in which case the valid prefix comes
back.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .codec.bytemap import ByteMap, InverseByteMap, derive_byte_map, invert
from .codec.chain import reconstruct_chain
from .codec.records import ByteMapRecord, ShardRecord
from .codec.shards import join, shard_count, split
from .config import GatewayConfig, get_config
from .discovery import discover_records
from .errors import DataIntegrity, ExternalServiceError, GatewayError, InvalidInput, NotFound
from .interfaces import ItemDiscoverer, KeyStore, RecordPersister
from .logging import get_logger, trace_scope
from .metrics import GatewayMetrics, get_metrics
from .utils.bytes import BytesLike, to_bytes

log = get_logger(__name__)

Payload = Union[BytesLike, str]


@dataclass(frozen=True)
class PushReceipt:
    """
    Outcome of one push.

      • group_id — group the shards were persisted under
      • refs     — store refs in chain order (head first)
      • size     — payload size in bytes
      • address  — address the records were minted to
    """
    group_id: str
    refs: Tuple[str, ...]
    size: int
    address: str

    @property
    def head(self) -> Optional[str]:
        return self.refs[0] if self.refs else None

    @property
    def tail(self) -> Optional[str]:
        return self.refs[-1] if self.refs else None


class Gateway:
    def __init__(
        self,
        persister: RecordPersister,
        discoverer: ItemDiscoverer,
        key_store: KeyStore,
        config: Optional[GatewayConfig] = None,
        *,
        metrics: Optional[GatewayMetrics] = None,
        strict_discovery: bool = True,
    ) -> None:
        self.persister = persister
        self.discoverer = discoverer
        self.key_store = key_store
        self.config = config or get_config()
        self.metrics = metrics or get_metrics()
        self.strict_discovery = strict_discovery
        self._maps: Dict[bytes, ByteMap] = {}

    # ------------------------------------------------------------------ keys

    def byte_map_for(self, public_key: BytesLike) -> ByteMap:
        pk = to_bytes(public_key)
        bm = self._maps.get(pk)
        if bm is None:
            bm = derive_byte_map(pk)
            self._maps[pk] = bm
        return bm

    def inverse_byte_map_for(self, public_key: BytesLike) -> InverseByteMap:
        return invert(self.byte_map_for(public_key))

    def _push_key(self, public_key: Optional[BytesLike]) -> bytes:
        if public_key is not None:
            return to_bytes(public_key)
        keys = self.key_store.public_keys()
        if not keys:
            raise NotFound("no public key available")
        return keys[0]

    def _pull_keys(self, public_key: Optional[BytesLike]) -> List[bytes]:
        if public_key is not None:
            return [to_bytes(public_key)]
        keys = self.key_store.public_keys()
        if not keys:
            raise NotFound("no public key available")
        return keys

    # ------------------------------------------------------------------ push

    def _check_payload(self, data: Payload) -> bytes:
        if isinstance(data, str):
            raw = data.encode("utf-8")
        elif isinstance(data, (bytes, bytearray, memoryview)):
            raw = to_bytes(data)
        else:
            raise InvalidInput(f"data must be bytes-like or str, got {type(data)!r}")

        limits = self.config.sharding
        if len(raw) > limits.file_size_limit:
            raise InvalidInput(
                "payload exceeds file size limit",
                data={"size": len(raw), "limit": limits.file_size_limit},
            )
        count = shard_count(len(raw), limits.max_shard_size)
        if count > limits.max_shards:
            raise InvalidInput(
                "payload needs more shards than allowed",
                data={"shards": count, "limit": limits.max_shards},
            )
        return raw

    async def push(
        self,
        data: Payload,
        group_id: str,
        public_key: Optional[BytesLike] = None,
    ) -> PushReceipt:
        """
        Split `data` with the owner's byte map and persist the shards in order.

        Raises:
          InvalidInput          payload or group_id rejected before anything is persisted
          NotFound              no key to push with
          ExternalServiceError  a persist call failed; data["persisted"] lists
                                the refs written before the failure
        """
        if not isinstance(group_id, str) or not group_id:
            raise InvalidInput("group_id must be a non-empty string")
        raw = self._check_payload(data)
        pk = self._push_key(public_key)
        address = self.key_store.address_of(pk)
        shards = split(raw, self.config.sharding.max_shard_size, self.byte_map_for(pk))

        with trace_scope(group_id=group_id, op="push"):
            refs: List[str] = []
            prev_ref: Optional[str] = None
            for shard in shards:
                record = ShardRecord(
                    group_id=group_id,
                    prev_ref=prev_ref,
                    payload=shard.data,
                    owner_address=address,
                )
                try:
                    ref = await self.persister.persist(
                        record, amount=self.config.sharding.mint_amount
                    )
                except Exception as e:
                    self.metrics.note_push_failure()
                    log.warning(
                        "persist failed, chain truncated",
                        extra={"shard_index": shard.index, "persisted": len(refs)},
                    )
                    info = {"group_id": group_id, "shard_index": shard.index, "persisted": list(refs)}
                    if isinstance(e, GatewayError):
                        raise ExternalServiceError(e.message or str(e), data={**e.data, **info}) from e
                    raise ExternalServiceError.from_exc(e, data=info) from e
                if not isinstance(ref, str) or not ref:
                    self.metrics.note_push_failure()
                    raise ExternalServiceError(
                        "persister returned no ref",
                        data={"group_id": group_id, "shard_index": shard.index, "persisted": list(refs)},
                    )
                refs.append(ref)
                prev_ref = ref

            self.metrics.note_push(shards=len(refs), size_bytes=len(raw))
            log.info("push complete", extra={"shards": len(refs), "size": len(raw)})

        return PushReceipt(group_id=group_id, refs=tuple(refs), size=len(raw), address=address)

    async def push_many(
        self,
        items: Iterable[Tuple[str, Payload]],
        public_key: Optional[BytesLike] = None,
    ) -> List[PushReceipt]:
        """
        Push several independent groups concurrently. `items` yields
        (group_id, data); group ids must be distinct.

        Every push runs to completion before this returns. If any group
        failed, the first failure is raised once all are done, with
        data["pushed"] mapping each group that landed to its refs and
        data["failed"] listing the groups that did not.
        """
        batch = list(items)
        ids = [gid for gid, _ in batch]
        if len(set(ids)) != len(ids):
            raise InvalidInput("group ids in one batch must be distinct")

        results = await asyncio.gather(
            *(self.push(data, gid, public_key) for gid, data in batch),
            return_exceptions=True,
        )
        receipts: List[PushReceipt] = []
        failures: List[Tuple[str, BaseException]] = []
        for gid, result in zip(ids, results):
            if isinstance(result, PushReceipt):
                receipts.append(result)
            elif isinstance(result, Exception):
                failures.append((gid, result))
            else:
                raise result
        if not failures:
            return receipts

        summary = {
            "pushed": {r.group_id: list(r.refs) for r in receipts},
            "failed": [gid for gid, _ in failures],
        }
        log.warning("batch push incomplete", extra={"failed": len(failures), "pushed": len(receipts)})
        gid, first = failures[0]
        if isinstance(first, GatewayError):
            first.data.setdefault("group_id", gid)
            first.data.update(summary)
            raise first
        raise ExternalServiceError.from_exc(first, data={"group_id": gid, **summary}) from first

    async def push_file(
        self,
        path: Union[str, "os.PathLike[str]"],
        group_id: str,
        public_key: Optional[BytesLike] = None,
    ) -> PushReceipt:
        return await self.push(self.read_file(path), group_id, public_key)

    async def publish_byte_map(self, public_key: Optional[BytesLike] = None) -> str:
        """Persist the owner's byte map so other parties can look it up."""
        pk = self._push_key(public_key)
        record = ByteMapRecord(byte_map=self.byte_map_for(pk), owner_address=self.key_store.address_of(pk))
        try:
            ref = await self.persister.persist(record, amount=self.config.sharding.mint_amount)
        except GatewayError:
            raise
        except Exception as e:
            raise ExternalServiceError.from_exc(e) from e
        if not isinstance(ref, str) or not ref:
            raise ExternalServiceError("persister returned no ref")
        log.info("byte map published", extra={"ref": ref, "fingerprint": record.byte_map.fingerprint()})
        return ref

    # ------------------------------------------------------------------ pull

    async def pull_records(
        self,
        group_id: str,
        public_key: Optional[BytesLike] = None,
    ) -> List[ShardRecord]:
        """Discover and order the records of `group_id` (head first)."""
        keys = self._pull_keys(public_key)
        addresses = [self.key_store.address_of(pk) for pk in keys]

        with trace_scope(group_id=group_id, op="pull"):
            items = await discover_records(
                self.discoverer,
                addresses,
                concurrency=self.config.ledger.discovery_concurrency,
                strict=self.strict_discovery,
                group_id=group_id,
                metrics=self.metrics,
            )
            with self.metrics.time_reconstruct() as outcome:
                try:
                    records = reconstruct_chain(items, group_id)
                except DataIntegrity as e:
                    outcome.fail(e.code)
                    log.warning("reconstruction failed", extra={"reason": e.message})
                    raise
                if not records:
                    outcome.fail("empty")
            log.debug("chain reconstructed", extra={"shards": len(records), "items": len(items)})
        return records

    async def pull(
        self,
        group_id: str,
        public_key: Optional[BytesLike] = None,
    ) -> Optional[bytes]:
        """
        Rebuild the payload of `group_id`, or None when no record of it exists.
        """
        records = await self.pull_records(group_id, public_key)
        if not records:
            return None

        head_owner = records[0].owner_address
        keys = self._pull_keys(public_key)
        owner_key = next((pk for pk in keys if self.key_store.address_of(pk) == head_owner), None)
        if owner_key is None and head_owner is not None:
            owner_key = self.key_store.public_key_for(head_owner)
        if owner_key is None:
            raise NotFound(
                "no key for the address owning the chain",
                data={"group_id": group_id, "address": head_owner},
            )
        return join(records, self.inverse_byte_map_for(owner_key))

    # ------------------------------------------------------------------ files

    @staticmethod
    def read_file(path: Union[str, "os.PathLike[str]"]) -> bytes:
        """Read a regular file into memory."""
        if not os.path.isfile(path):
            raise InvalidInput(f"the path provided is not a file: {os.fspath(path)}")
        with open(path, "rb") as f:
            return f.read()


__all__ = ["Gateway", "PushReceipt"]
