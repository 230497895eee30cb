"""
shardgate • codec

Pure, synchronous transforms over in-memory buffers:

- bytemap : derive / invert / apply a byte substitution table
- shards  : split a payload into ordered shards and join them back
- records : typed persisted records and their schema-tagged JSON form
- chain   : order discovered records into the single valid chain
"""

from __future__ import annotations

from .bytemap import ByteMap, InverseByteMap, apply, derive_byte_map, invert
from .chain import ChainLinker, reconstruct_chain
from .records import (
    ByteMapRecord,
    Record,
    ShardRecord,
    decode_record,
    encode_metadata,
    load_metadata,
)
from .shards import Shard, iter_shards, join, shard_count, split

__all__ = [
    "ByteMap",
    "InverseByteMap",
    "derive_byte_map",
    "invert",
    "apply",
    "Shard",
    "iter_shards",
    "split",
    "join",
    "shard_count",
    "ShardRecord",
    "ByteMapRecord",
    "Record",
    "encode_metadata",
    "load_metadata",
    "decode_record",
    "ChainLinker",
    "reconstruct_chain",
]
