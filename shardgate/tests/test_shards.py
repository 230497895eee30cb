import random

import pytest

from shardgate.codec.bytemap import derive_byte_map, invert
from shardgate.codec.records import ShardRecord
from shardgate.codec.shards import Shard, join, shard_count, split
from shardgate.errors import InvalidInput

SEED = bytes(range(32))


@pytest.mark.parametrize(
    "length,size,expected",
    [
        (0, 10, []),
        (5, 10, [5]),
        (10, 10, [10]),
        (30, 10, [10, 10, 10]),
        (250, 100, [100, 100, 50]),
        (1, 1, [1]),
    ],
)
def test_split_lengths(length, size, expected):
    shards = split(bytes(length), size)
    assert [len(s) for s in shards] == expected
    assert [s.index for s in shards] == list(range(len(expected)))
    if shards:
        assert shards[-1].is_last
        assert not any(s.is_last for s in shards[:-1])


def test_split_offsets_follow_chunks():
    shards = split(b"abcdefghij", 4)
    assert [s.offset for s in shards] == [0, 4, 8]
    assert [s.data for s in shards] == [b"abcd", b"efgh", b"ij"]


@pytest.mark.parametrize("size", [0, -1, 1.5, True, None])
def test_split_rejects_bad_shard_size(size):
    with pytest.raises(InvalidInput):
        split(b"abc", size)  # type: ignore[arg-type]


def test_split_rejects_non_bytes():
    with pytest.raises(InvalidInput):
        split("text", 4)  # type: ignore[arg-type]


def test_split_applies_cipher_per_shard():
    bm = derive_byte_map(SEED)
    data = bytes(range(200))
    plain = split(data, 64)
    mapped = split(data, 64, bm)
    assert [len(s) for s in mapped] == [len(s) for s in plain]
    for p, m in zip(plain, mapped):
        assert m.data == bytes(bm[b] for b in p.data)


def test_join_round_trip_with_cipher():
    rng = random.Random(1234)
    bm = derive_byte_map(SEED)
    inv = invert(bm)
    for length in (0, 1, 99, 100, 101, 250, 300):
        data = bytes(rng.randrange(256) for _ in range(length))
        assert join(split(data, 100, bm), inv) == data


def test_join_without_cipher_concatenates_in_order():
    assert join([b"ab", bytearray(b"cd"), memoryview(b"e")]) == b"abcde"
    assert join([Shard(0, 0, b"x", False), Shard(1, 1, b"y", True)]) == b"xy"


def test_join_accepts_records():
    recs = [ShardRecord("g", None, b"he"), ShardRecord("g", "r0", b"llo")]
    assert join(recs) == b"hello"


def test_join_does_not_reorder():
    shards = split(b"abcdef", 2)
    assert join(list(reversed(shards))) == b"efcdab"


def test_join_rejects_unknown_items():
    with pytest.raises(InvalidInput):
        join([42])  # type: ignore[list-item]


def test_shard_count():
    assert shard_count(0, 10) == 0
    assert shard_count(10, 10) == 1
    assert shard_count(11, 10) == 2
    with pytest.raises(InvalidInput):
        shard_count(1, 0)
