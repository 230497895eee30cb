"""
shardgate • discovery

Turn what the ledger returns for a set of addresses into the working set the
chain reconstructor consumes: a mapping from self_ref to ShardRecord.

    {address: {self_ref: RawItem}}  --aggregate-->  {self_ref: ShardRecord}

Rules
-----
• Items whose metadata is not JSON, or whose schemaTag is not the shard tag,
  share the store with us but are not ours: they are skipped.
• An item tagged as a shard whose body cannot be decoded raises
  RecordFormatError when it claims the group being rebuilt (or its group
  cannot be read). Malformed items of other groups, and every malformed
  item when `strict=False`, are skipped and counted.
• Per-address maps are unioned by self_ref. The same self_ref under two
  different addresses raises DataIntegrity; neither side is preferred.
• Addresses may be queried concurrently; the result is a union keyed by
  self_ref, so it does not depend on completion order.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .codec.records import ShardRecord, group_of, load_metadata, schema_of
from .constants import KNOWN_SCHEMAS, SCHEMA_SHARD
from .errors import DataIntegrity, ExternalServiceError, GatewayError, RecordFormatError
from .interfaces import DiscoveryResult, ItemDiscoverer, RawItem
from .logging import get_logger
from .metrics import GatewayMetrics

log = get_logger(__name__)


def parse_item(
    self_ref: str,
    item: RawItem,
    *,
    strict: bool = True,
    group_id: Optional[str] = None,
    metrics: Optional[GatewayMetrics] = None,
) -> Optional[ShardRecord]:
    """
    Decode one discovered item into a ShardRecord, or None if it is not one.

    With `group_id` set, a malformed shard only raises when it claims that
    group or its group id is unreadable.
    """
    obj = load_metadata(item.metadata or "")
    tag = schema_of(obj) if obj is not None else None
    if tag != SCHEMA_SHARD:
        # other record kinds of ours ("schema") vs. unrelated items ("foreign")
        reason = "schema" if tag in KNOWN_SCHEMAS else "foreign"
        log.debug("skipping non-shard item", extra={"self_ref": self_ref, "address": item.address, "reason": reason})
        if metrics is not None:
            metrics.note_skipped(reason=reason)
        return None

    try:
        return ShardRecord.from_dict(obj, self_ref=self_ref, owner_address=item.address)
    except RecordFormatError as e:
        claimed = group_of(obj)
        if strict and (group_id is None or claimed is None or claimed == group_id):
            e.data.setdefault("self_ref", self_ref)
            e.data.setdefault("address", item.address)
            raise
        log.warning(
            "skipping malformed shard record",
            extra={"self_ref": self_ref, "address": item.address, "reason": e.message, "claimed_group": claimed},
        )
        if metrics is not None:
            metrics.note_skipped(reason="malformed")
        return None


def aggregate(
    per_address: Mapping[str, Mapping[str, RawItem]],
    *,
    strict: bool = True,
    group_id: Optional[str] = None,
    metrics: Optional[GatewayMetrics] = None,
) -> Dict[str, ShardRecord]:
    """
    Union per-address item maps into {self_ref: ShardRecord}.

    Raises:
      DataIntegrity if one self_ref was reported under two different addresses.
    """
    seen: Dict[str, str] = {}
    out: Dict[str, ShardRecord] = {}
    for address in sorted(per_address):
        for self_ref, item in per_address[address].items():
            owner = item.address or address
            prior = seen.get(self_ref)
            if prior is not None and prior != owner:
                raise DataIntegrity(
                    "self_ref reported under two addresses",
                    data={"self_ref": self_ref, "addresses": sorted((prior, owner))},
                )
            seen[self_ref] = owner
            if self_ref in out:
                continue
            rec = parse_item(self_ref, item, strict=strict, group_id=group_id, metrics=metrics)
            if rec is not None:
                out[self_ref] = rec

    if metrics is not None:
        metrics.note_discovered(len(out))
    return out


async def discover_records(
    discoverer: ItemDiscoverer,
    addresses: Iterable[str],
    *,
    concurrency: Optional[int] = None,
    strict: bool = True,
    group_id: Optional[str] = None,
    metrics: Optional[GatewayMetrics] = None,
) -> Dict[str, ShardRecord]:
    """
    Query every address (one `discover` call each, concurrently) and aggregate.

    `concurrency` bounds the number of in-flight queries. Collaborator
    failures surface as ExternalServiceError.
    """
    unique: List[str] = sorted(set(addresses))
    if not unique:
        return {}

    sem = asyncio.Semaphore(concurrency) if concurrency else None

    async def _one(address: str) -> DiscoveryResult:
        if sem is None:
            return await _call(discoverer, address)
        async with sem:
            return await _call(discoverer, address)

    results = await asyncio.gather(*(_one(a) for a in unique))

    merged: Dict[str, Dict[str, RawItem]] = {}
    for result in results:
        for address, items in result.items():
            bucket = merged.setdefault(address, {})
            for self_ref, item in items.items():
                prior = bucket.get(self_ref)
                if prior is not None and prior != item:
                    raise DataIntegrity(
                        "conflicting items for one self_ref",
                        data={"self_ref": self_ref, "address": address},
                    )
                bucket[self_ref] = item

    log.debug(
        "discovery complete",
        extra={"addresses": len(unique), "items": sum(len(v) for v in merged.values())},
    )
    return aggregate(merged, strict=strict, group_id=group_id, metrics=metrics)


async def _call(discoverer: ItemDiscoverer, address: str) -> DiscoveryResult:
    try:
        return await discoverer.discover([address])
    except GatewayError:
        raise
    except Exception as e:
        raise ExternalServiceError.from_exc(e, data={"address": address}) from e


# ------------------------- ledger response parsing -------------------------


def parse_balance_response(payload: Mapping[str, Any]) -> DiscoveryResult:
    """
    Convert a ledger balance response into {address: {self_ref: RawItem}}.

    Accepted shape (the envelope levels are optional):

        {"content": {"fetchBalanceResponse": {"address_list": {
            "<address>": [
                {"out_point": {...},
                 "value": {"Item": {"amount": 1, "genesis_hash": "<ref>",
                                    "metadata": "<json text>"}}},
                {"out_point": {...}, "value": {"Token": 10}},
                ...
            ]}}}}

    Entries that are not items (tokens, malformed entries) are skipped.
    """
    body: Any = payload
    for key in ("content", "fetchBalanceResponse"):
        if isinstance(body, Mapping) and key in body:
            body = body[key]
    address_list = body.get("address_list") if isinstance(body, Mapping) else None
    if not isinstance(address_list, Mapping):
        return {}

    out: DiscoveryResult = {}
    for address, entries in address_list.items():
        items: Dict[str, RawItem] = {}
        for entry in entries if isinstance(entries, Sequence) and not isinstance(entries, str) else ():
            value = entry.get("value") if isinstance(entry, Mapping) else None
            raw = value.get("Item") if isinstance(value, Mapping) else None
            if not isinstance(raw, Mapping):
                continue
            ref = raw.get("genesis_hash")
            if not isinstance(ref, str) or not ref:
                continue
            try:
                amount = int(raw.get("amount") or 0)
            except (TypeError, ValueError):
                log.debug("skipping entry with bad amount", extra={"self_ref": ref, "address": address})
                continue
            items[ref] = RawItem(
                amount=amount,
                metadata=raw.get("metadata"),
                address=str(address),
            )
        out[str(address)] = items
    return out


__all__ = [
    "parse_item",
    "aggregate",
    "discover_records",
    "parse_balance_response",
]
