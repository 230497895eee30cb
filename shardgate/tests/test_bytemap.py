import random

import pytest

from shardgate.codec.bytemap import ByteMap, InverseByteMap, apply, derive_byte_map, invert
from shardgate.errors import InvalidInput

SEED = bytes(range(32))


def _reference_shuffle(digest: bytes) -> list:
    table = list(range(256))
    for i in range(255, 0, -1):
        j = digest[i % len(digest)] % (i + 1)
        table[i], table[j] = table[j], table[i]
    return table


def test_derive_is_a_permutation():
    rng = random.Random(7)
    for _ in range(20):
        seed = bytes(rng.randrange(256) for _ in range(rng.randrange(1, 64)))
        bm = derive_byte_map(seed)
        assert sorted(bm.table) == list(range(256))


def test_derive_is_deterministic():
    assert derive_byte_map(SEED) == derive_byte_map(bytes(SEED))
    assert derive_byte_map(SEED).table == derive_byte_map(bytearray(SEED)).table


def test_derive_matches_sha256_fisher_yates():
    import hashlib

    digest = hashlib.sha256(SEED).digest()
    assert derive_byte_map(SEED).to_list() == _reference_shuffle(digest)


def test_different_seeds_give_different_maps():
    assert derive_byte_map(b"alice") != derive_byte_map(b"bob")


def test_empty_seed_rejected():
    with pytest.raises(InvalidInput):
        derive_byte_map(b"")


def test_non_bytes_seed_rejected():
    with pytest.raises(InvalidInput):
        derive_byte_map("not bytes")  # type: ignore[arg-type]


def test_invert_is_functional_inverse():
    bm = derive_byte_map(SEED)
    inv = invert(bm)
    assert isinstance(inv, InverseByteMap)
    for i in range(256):
        assert inv[bm[i]] == i
    assert inv.inverse() == bm


def test_apply_round_trip():
    bm = derive_byte_map(b"owner-key")
    data = bytes(range(256)) * 3 + b"hello"
    out = apply(bm, data)
    assert len(out) == len(data)
    assert out != data
    assert apply(invert(bm), out) == data


def test_apply_accepts_int_sequences_and_memoryview():
    bm = derive_byte_map(SEED)
    data = b"\x00\x01\xfe\xff"
    assert apply(bm, list(data)) == apply(bm, data)
    assert apply(bm, memoryview(data)) == apply(bm, data)


def test_apply_rejects_out_of_range_values():
    bm = derive_byte_map(SEED)
    with pytest.raises(InvalidInput):
        apply(bm, [1, 2, 256])
    with pytest.raises(InvalidInput):
        apply(bm, [-1])


def test_bytemap_construction_checks_bijection():
    with pytest.raises(InvalidInput):
        ByteMap(tuple(range(255)))
    dup = list(range(256))
    dup[1] = 0
    with pytest.raises(InvalidInput):
        ByteMap(tuple(dup))
    assert ByteMap.from_sequence(range(256)).to_list() == list(range(256))


def test_fingerprint_is_short_and_stable():
    bm = derive_byte_map(SEED)
    assert bm.fingerprint() == derive_byte_map(SEED).fingerprint()
    assert len(bm.fingerprint()) == 8
