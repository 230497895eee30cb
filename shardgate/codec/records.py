"""
shardgate • codec • Records

Persisted record types and their JSON wire form.

A ledger item carries an opaque metadata blob. Different record kinds share
one store, so every blob is tagged with a `schemaTag` and decoded into a
typed record only when the tag is one we understand:

    XGP_V1_SHARD        -> ShardRecord
    XGP_V1_BYTEMAP      -> ByteMapRecord
    XGP_V1_IPFS_PINATA  -> (recognised, skipped)
    XGP_V1_DYNAMODB     -> (recognised, skipped)
    anything else       -> (skipped)

Shard wire form
---------------
    {"groupId": "report-2024", "prevRef": null | "<ref>",
     "schemaTag": "XGP_V1_SHARD", "payload": [0..255, ...]}

Older gateways wrote `shardId`, `prev`, `schema` and `data`; those keys are
accepted on decode and never written.

Notes
-----
• `self_ref` and `owner_address` are not part of the wire form: the store
  assigns the ref when the record is persisted, and discovery knows which
  address it found the item under.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..constants import (
    BYTE_MAP_SIZE,
    KEY_GROUP_ID,
    KEY_PAYLOAD,
    KEY_PREV_REF,
    KEY_SCHEMA,
    LEGACY_KEYS,
    SCHEMA_BYTEMAP,
    SCHEMA_SHARD,
)
from ..errors import InvalidInput, RecordFormatError
from ..utils.bytes import to_bytes
from .bytemap import ByteMap

MetadataBlob = Union[str, bytes, bytearray, Mapping[str, Any]]


# --------------------------------- Types ----------------------------------- #


@dataclass(frozen=True)
class ShardRecord:
    """
    A persisted shard plus its chain linkage.

      • group_id      — correlates every shard of one payload
      • prev_ref      — ref of the preceding record; None for the head
      • payload       — (possibly substituted) shard bytes
      • self_ref      — ref assigned by the store; None until persisted
      • owner_address — address the record was discovered under
    """

    group_id: str
    prev_ref: Optional[str]
    payload: bytes
    self_ref: Optional[str] = None
    owner_address: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.group_id, str) or not self.group_id:
            raise InvalidInput("group_id must be a non-empty string")
        if self.prev_ref is not None and (not isinstance(self.prev_ref, str) or not self.prev_ref):
            raise InvalidInput("prev_ref must be None or a non-empty string")
        if self.self_ref is not None and (not isinstance(self.self_ref, str) or not self.self_ref):
            raise InvalidInput("self_ref must be None or a non-empty string")
        if not isinstance(self.payload, (bytes, bytearray, memoryview)):
            raise InvalidInput("payload must be bytes-like")
        object.__setattr__(self, "payload", to_bytes(self.payload))

    @property
    def is_head(self) -> bool:
        return self.prev_ref is None

    def with_ref(self, self_ref: str, owner_address: Optional[str] = None) -> "ShardRecord":
        return replace(
            self,
            self_ref=self_ref,
            owner_address=owner_address if owner_address is not None else self.owner_address,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            KEY_GROUP_ID: self.group_id,
            KEY_PREV_REF: self.prev_ref,
            KEY_SCHEMA: SCHEMA_SHARD,
            KEY_PAYLOAD: list(self.payload),
        }

    @staticmethod
    def from_dict(
        d: Mapping[str, Any],
        *,
        self_ref: Optional[str] = None,
        owner_address: Optional[str] = None,
    ) -> "ShardRecord":
        group_id = _field(d, KEY_GROUP_ID)
        prev_ref = _field(d, KEY_PREV_REF, default=None)
        payload = _field(d, KEY_PAYLOAD)

        # Early gateways used numeric group ids.
        if isinstance(group_id, int) and not isinstance(group_id, bool):
            group_id = str(group_id)
        if not isinstance(group_id, str) or not group_id:
            raise RecordFormatError("groupId must be a non-empty string", data={"self_ref": self_ref})
        if prev_ref is not None and (not isinstance(prev_ref, str) or not prev_ref):
            raise RecordFormatError("prevRef must be null or a non-empty string", data={"self_ref": self_ref})

        return ShardRecord(
            group_id=group_id,
            prev_ref=prev_ref,
            payload=_payload_bytes(payload, self_ref=self_ref),
            self_ref=self_ref,
            owner_address=owner_address,
        )


@dataclass(frozen=True)
class ByteMapRecord:
    """
    A byte map published to the store so other parties can find it.

      • byte_map      — the published table
      • owner_address — address the map belongs to (optional)
      • self_ref      — ref assigned by the store
    """

    byte_map: ByteMap
    owner_address: Optional[str] = None
    self_ref: Optional[str] = None

    def with_ref(self, self_ref: str, owner_address: Optional[str] = None) -> "ByteMapRecord":
        return replace(
            self,
            self_ref=self_ref,
            owner_address=owner_address if owner_address is not None else self.owner_address,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            KEY_SCHEMA: SCHEMA_BYTEMAP,
            "byteMap": self.byte_map.to_list(),
            "address": self.owner_address,
        }

    @staticmethod
    def from_dict(
        d: Mapping[str, Any],
        *,
        self_ref: Optional[str] = None,
        owner_address: Optional[str] = None,
    ) -> "ByteMapRecord":
        table = d.get("byteMap")
        if not isinstance(table, list) or len(table) != BYTE_MAP_SIZE:
            raise RecordFormatError("byteMap must be a list of 256 ints", data={"self_ref": self_ref})
        try:
            byte_map = ByteMap(tuple(table))
        except InvalidInput as e:
            raise RecordFormatError(str(e.message), data={"self_ref": self_ref}) from e
        addr = d.get("address")
        return ByteMapRecord(
            byte_map=byte_map,
            owner_address=owner_address if owner_address is not None else addr,
            self_ref=self_ref,
        )


Record = Union[ShardRecord, ByteMapRecord]


# ------------------------------ Encoding ----------------------------------- #


def encode_metadata(record: Record) -> str:
    """Compact, key-sorted JSON text for a record (deterministic)."""
    return json.dumps(record.to_dict(), separators=(",", ":"), sort_keys=True)


def load_metadata(blob: MetadataBlob) -> Optional[Dict[str, Any]]:
    """
    Turn a metadata blob into a dict. Returns None when the blob is not a
    JSON object (unrelated items share the store, so this is not an error).
    """
    if isinstance(blob, Mapping):
        return dict(blob)
    if isinstance(blob, (bytes, bytearray)):
        try:
            blob = bytes(blob).decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(blob, str):
        return None
    try:
        obj = json.loads(blob)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def schema_of(obj: Mapping[str, Any]) -> Optional[str]:
    tag = _field(obj, KEY_SCHEMA, default=None)
    return tag if isinstance(tag, str) else None


def group_of(obj: Mapping[str, Any]) -> Optional[str]:
    """Group id of a decoded record body, or None when it cannot be read."""
    group_id = _field(obj, KEY_GROUP_ID, default=None)
    if isinstance(group_id, int) and not isinstance(group_id, bool):
        group_id = str(group_id)
    return group_id if isinstance(group_id, str) and group_id else None


def decode_record(
    blob: MetadataBlob,
    *,
    self_ref: Optional[str] = None,
    owner_address: Optional[str] = None,
) -> Optional[Record]:
    """
    Decode a metadata blob into the record variant named by its schema tag.

    Returns None for non-JSON blobs and for tags without a record type here.
    Raises RecordFormatError when the tag is understood but the body is not.
    """
    obj = load_metadata(blob)
    if obj is None:
        return None
    tag = schema_of(obj)
    decoder = _DECODERS.get(tag or "")
    if decoder is None:
        return None
    return decoder(obj, self_ref=self_ref, owner_address=owner_address)


_DECODERS = {
    SCHEMA_SHARD: ShardRecord.from_dict,
    SCHEMA_BYTEMAP: ByteMapRecord.from_dict,
}


# ------------------------------ Internals ---------------------------------- #

_MISSING = object()


def _field(d: Mapping[str, Any], key: str, default: Any = _MISSING) -> Any:
    if key in d:
        return d[key]
    legacy = LEGACY_KEYS.get(key)
    if legacy is not None and legacy in d:
        return d[legacy]
    if default is _MISSING:
        raise RecordFormatError(f"missing field {key!r}")
    return default


def _payload_bytes(value: Any, *, self_ref: Optional[str]) -> bytes:
    if isinstance(value, list):
        for i, b in enumerate(value):
            if not isinstance(b, int) or isinstance(b, bool) or not 0 <= b <= 255:
                raise RecordFormatError(
                    f"payload byte {i} out of range: {b!r}", data={"self_ref": self_ref}
                )
        return bytes(value)
    if isinstance(value, Mapping):
        # JSON-serialised typed arrays come back as {"0": b0, "1": b1, ...}
        try:
            ordered: Tuple[Any, ...] = tuple(value[str(i)] for i in range(len(value)))
        except KeyError as e:
            raise RecordFormatError("payload object is not a dense index map", data={"self_ref": self_ref}) from e
        return _payload_bytes(list(ordered), self_ref=self_ref)
    raise RecordFormatError("payload must be an array of byte values", data={"self_ref": self_ref})


__all__ = [
    "ShardRecord",
    "ByteMapRecord",
    "Record",
    "MetadataBlob",
    "encode_metadata",
    "load_metadata",
    "schema_of",
    "group_of",
    "decode_record",
]
