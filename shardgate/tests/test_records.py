import json

import pytest

from shardgate.codec.bytemap import derive_byte_map
from shardgate.codec.records import (
    ByteMapRecord,
    ShardRecord,
    decode_record,
    encode_metadata,
    load_metadata,
)
from shardgate.constants import SCHEMA_DYNAMODB, SCHEMA_IPFS_PINATA, SCHEMA_SHARD
from shardgate.errors import DataIntegrity, InvalidInput, RecordFormatError


def test_shard_wire_form():
    rec = ShardRecord(group_id="g1", prev_ref="r0", payload=b"\x00\x7f\xff")
    obj = json.loads(encode_metadata(rec))
    assert obj == {"groupId": "g1", "prevRef": "r0", "schemaTag": SCHEMA_SHARD, "payload": [0, 127, 255]}


def test_head_encodes_null_prev():
    obj = json.loads(encode_metadata(ShardRecord("g1", None, b"a")))
    assert obj["prevRef"] is None


def test_decode_attaches_ref_and_owner():
    blob = encode_metadata(ShardRecord("g1", "r0", b"xyz"))
    rec = decode_record(blob, self_ref="r1", owner_address="addr")
    assert rec == ShardRecord("g1", "r0", b"xyz", self_ref="r1", owner_address="addr")


def test_decode_accepts_legacy_keys_and_numeric_group():
    blob = json.dumps({"shardId": 7, "prev": None, "schema": SCHEMA_SHARD, "data": [104, 105]})
    rec = decode_record(blob, self_ref="h")
    assert isinstance(rec, ShardRecord)
    assert rec.group_id == "7"
    assert rec.prev_ref is None
    assert rec.payload == b"hi"


def test_decode_accepts_mapping_and_index_object_payload():
    obj = {"groupId": "g", "prevRef": None, "schemaTag": SCHEMA_SHARD, "payload": {"0": 1, "1": 2}}
    rec = decode_record(obj)
    assert rec.payload == b"\x01\x02"


@pytest.mark.parametrize(
    "blob",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"schemaTag": "SOMETHING_ELSE", "groupId": "g"}),
        json.dumps({"schemaTag": SCHEMA_IPFS_PINATA, "cid": "Qm"}),
        json.dumps({"schemaTag": SCHEMA_DYNAMODB, "table": "t"}),
        json.dumps({"groupId": "g", "payload": []}),
        b"\xff\xfe",
    ],
)
def test_unrelated_blobs_decode_to_none(blob):
    assert decode_record(blob) is None


@pytest.mark.parametrize(
    "body",
    [
        {"prevRef": None, "payload": [1]},
        {"groupId": "", "prevRef": None, "payload": [1]},
        {"groupId": "g", "prevRef": 5, "payload": [1]},
        {"groupId": "g", "prevRef": None, "payload": [1, 256]},
        {"groupId": "g", "prevRef": None, "payload": "AQ=="},
        {"groupId": "g", "prevRef": None},
    ],
)
def test_malformed_shard_body_raises(body):
    body = dict(body, schemaTag=SCHEMA_SHARD)
    with pytest.raises(RecordFormatError) as ei:
        decode_record(json.dumps(body))
    assert isinstance(ei.value, DataIntegrity)


def test_bytemap_record_round_trip():
    bm = derive_byte_map(b"key")
    blob = encode_metadata(ByteMapRecord(byte_map=bm, owner_address="a1"))
    rec = decode_record(blob, self_ref="bm0")
    assert isinstance(rec, ByteMapRecord)
    assert rec.byte_map == bm
    assert rec.owner_address == "a1"
    assert rec.self_ref == "bm0"


def test_bytemap_record_rejects_non_permutation():
    blob = json.dumps({"schemaTag": "XGP_V1_BYTEMAP", "byteMap": [0] * 256})
    with pytest.raises(RecordFormatError):
        decode_record(blob)


def test_record_validation():
    with pytest.raises(InvalidInput):
        ShardRecord("", None, b"")
    with pytest.raises(InvalidInput):
        ShardRecord("g", "", b"")
    with pytest.raises(InvalidInput):
        ShardRecord("g", None, "text")  # type: ignore[arg-type]
    rec = ShardRecord("g", None, bytearray(b"ab"))
    assert rec.payload == b"ab" and rec.is_head
    assert rec.with_ref("r0").self_ref == "r0"


def test_load_metadata():
    assert load_metadata({"a": 1}) == {"a": 1}
    assert load_metadata('{"a": 1}') == {"a": 1}
    assert load_metadata(b'{"a": 1}') == {"a": 1}
    assert load_metadata("null") is None
