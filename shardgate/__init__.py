"""
shardgate — sharded, byte-substituted payload storage over a ledger.

Push: derive the owner's byte map, split the payload into shards and persist
them one after another, each record pointing at the ref of its predecessor.

Pull: discover the owner's records across addresses, link them back into the
single valid chain and join the shards through the inverse map.

The codec (`shardgate.codec`) is pure and synchronous; persistence and
discovery are supplied by collaborators implementing the protocols in
`shardgate.interfaces`.
"""

from __future__ import annotations

from .version import __version__, get_version
from .codec.bytemap import ByteMap, InverseByteMap, apply, derive_byte_map, invert
from .codec.chain import reconstruct_chain
from .codec.records import ByteMapRecord, ShardRecord
from .codec.shards import Shard, join, split
from .errors import (
    DataIntegrity,
    ExternalServiceError,
    GatewayError,
    InvalidInput,
    NotFound,
    RecordFormatError,
)

__all__ = [
    "__version__",
    "get_version",
    "ByteMap",
    "InverseByteMap",
    "derive_byte_map",
    "invert",
    "apply",
    "Shard",
    "split",
    "join",
    "ShardRecord",
    "ByteMapRecord",
    "reconstruct_chain",
    "GatewayError",
    "InvalidInput",
    "DataIntegrity",
    "RecordFormatError",
    "ExternalServiceError",
    "NotFound",
]
