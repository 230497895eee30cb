import random
from typing import Dict, List

import pytest

from shardgate.codec.bytemap import derive_byte_map, invert
from shardgate.codec.chain import ChainLinker, reconstruct_chain
from shardgate.codec.records import ShardRecord
from shardgate.codec.shards import join, split
from shardgate.errors import DataIntegrity

SEED = bytes(range(32))


def _chain(group_id: str, n: int, prefix: str = "r") -> List[ShardRecord]:
    recs = []
    prev = None
    for i in range(n):
        ref = f"{prefix}{i}"
        recs.append(ShardRecord(group_id, prev, bytes([i]), self_ref=ref))
        prev = ref
    return recs


def _as_items(recs, rng=None) -> Dict[str, ShardRecord]:
    recs = list(recs)
    if rng is not None:
        rng.shuffle(recs)
    return {r.self_ref: r for r in recs}


def test_empty_group_returns_empty_list():
    assert reconstruct_chain({}, "g") == []
    assert reconstruct_chain(_as_items(_chain("other", 3)), "g") == []


def test_single_record_chain():
    recs = _chain("g", 1)
    assert reconstruct_chain(_as_items(recs), "g") == recs


def test_order_independent_of_mapping_order():
    recs = _chain("g", 25)
    rng = random.Random(99)
    for _ in range(10):
        out = reconstruct_chain(_as_items(recs, rng), "g")
        assert [r.self_ref for r in out] == [f"r{i}" for i in range(25)]


def test_filters_other_groups():
    items = _as_items(_chain("a", 4, "a") + _chain("b", 3, "b"), random.Random(3))
    assert [r.self_ref for r in reconstruct_chain(items, "a")] == ["a0", "a1", "a2", "a3"]
    assert [r.self_ref for r in reconstruct_chain(items, "b")] == ["b0", "b1", "b2"]


def test_fork_is_rejected():
    recs = _chain("g", 3)
    recs.append(ShardRecord("g", "r1", b"x", self_ref="fork"))
    with pytest.raises(DataIntegrity) as ei:
        reconstruct_chain(_as_items(recs), "g")
    assert "fork" in ei.value.message
    assert sorted(ei.value.data["forks"]["r1"]) == ["fork", "r2"]


def test_missing_head_is_rejected():
    recs = _chain("g", 3)[1:]
    recs.append(ShardRecord("g", "ghost", b"x", self_ref="r0"))
    with pytest.raises(DataIntegrity) as ei:
        reconstruct_chain(_as_items(recs), "g")
    assert ei.value.data["heads"] == []


def test_two_heads_are_rejected():
    recs = _chain("g", 2) + [ShardRecord("g", None, b"x", self_ref="other-head")]
    with pytest.raises(DataIntegrity):
        reconstruct_chain(_as_items(recs), "g")


def test_broken_link_is_rejected():
    recs = _chain("g", 4)
    # r2 lost: r3 points at a ref that is not in the set
    del recs[2]
    with pytest.raises(DataIntegrity) as ei:
        reconstruct_chain(_as_items(recs), "g")
    assert ei.value.data["unreachable"] == ["r3"]
    assert ei.value.data["reached"] == 2


def test_cycle_detached_from_head_is_rejected():
    recs = _chain("g", 2) + [
        ShardRecord("g", "c1", b"x", self_ref="c0"),
        ShardRecord("g", "c0", b"y", self_ref="c1"),
    ]
    with pytest.raises(DataIntegrity):
        reconstruct_chain(_as_items(recs), "g")


def test_lost_tail_yields_valid_prefix():
    recs = _chain("g", 4)[:3]
    assert [r.self_ref for r in reconstruct_chain(_as_items(recs), "g")] == ["r0", "r1", "r2"]


def test_mismatched_key_is_rejected():
    rec = ShardRecord("g", None, b"x", self_ref="r0")
    with pytest.raises(DataIntegrity):
        reconstruct_chain({"not-r0": rec}, "g")


def test_records_without_self_ref_take_their_key():
    items = {
        "k0": ShardRecord("g", None, b"a"),
        "k1": ShardRecord("g", "k0", b"b"),
    }
    out = reconstruct_chain(items, "g")
    assert [r.self_ref for r in out] == ["k0", "k1"]


def test_linker_diagnostics():
    linker = ChainLinker(_as_items(_chain("g", 3)), "g")
    assert len(linker) == 3
    assert linker.heads() == ["r0"]
    assert linker.unreachable(["r0"]) == ["r1", "r2"]


def test_end_to_end_250_bytes():
    data = bytes(range(250))
    bm = derive_byte_map(SEED)
    shards = split(data, 100, bm)
    assert [len(s) for s in shards] == [100, 100, 50]

    records = []
    prev = None
    for i, shard in enumerate(shards):
        ref = f"r{i}"
        records.append(ShardRecord("file-1", prev, shard.data, self_ref=ref, owner_address="addr"))
        prev = ref

    shuffled = [records[2], records[0], records[1]]
    items = {r.self_ref: r for r in shuffled}

    ordered = reconstruct_chain(items, "file-1")
    assert [r.self_ref for r in ordered] == ["r0", "r1", "r2"]
    assert [r.prev_ref for r in ordered] == [None, "r0", "r1"]
    assert join(ordered, invert(bm)) == data
