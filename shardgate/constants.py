"""
shardgate constants.

Canonical defaults and bounds for sharding and the persisted record schema.
These values are intentionally lightweight (no heavy imports) and safe to
import from anywhere.

Note: runtime configuration lives in `shardgate.config`. These constants
define *defaults* and *upper bounds* that other modules use for validation.
"""

from __future__ import annotations

from typing import FrozenSet

# ------------------------------- sharding -----------------------------------

#: Default maximum shard size in bytes.
MAX_SHARD_SIZE_DEFAULT: int = 200
#: Default maximum payload size accepted by a push (bytes).
FILE_SIZE_LIMIT_DEFAULT: int = 1024
#: Default maximum number of shards per group.
MAX_SHARDS_DEFAULT: int = 10
#: Default amount minted per persisted record.
MINT_AMOUNT_DEFAULT: int = 1
#: Hard safety cap for payloads (config must not exceed).
FILE_SIZE_HARD_CAP: int = 64 * 1024 * 1024  # 64 MiB


# ------------------------------- byte maps ----------------------------------

#: Number of entries in a byte substitution table.
BYTE_MAP_SIZE: int = 256


# ----------------------------- record schema --------------------------------

#: Shard records (the only tag the discovery parser decodes into ShardRecord).
SCHEMA_SHARD: str = "XGP_V1_SHARD"
#: Published byte maps.
SCHEMA_BYTEMAP: str = "XGP_V1_BYTEMAP"
#: Pinata/IPFS pointer records (recognised, never decoded here).
SCHEMA_IPFS_PINATA: str = "XGP_V1_IPFS_PINATA"
#: DynamoDB pointer records (recognised, never decoded here).
SCHEMA_DYNAMODB: str = "XGP_V1_DYNAMODB"

KNOWN_SCHEMAS: FrozenSet[str] = frozenset(
    {SCHEMA_SHARD, SCHEMA_BYTEMAP, SCHEMA_IPFS_PINATA, SCHEMA_DYNAMODB}
)

# Wire keys (current) and their legacy aliases.
KEY_GROUP_ID = "groupId"
KEY_PREV_REF = "prevRef"
KEY_SCHEMA = "schemaTag"
KEY_PAYLOAD = "payload"

LEGACY_KEYS = {
    KEY_GROUP_ID: "shardId",
    KEY_PREV_REF: "prev",
    KEY_SCHEMA: "schema",
    KEY_PAYLOAD: "data",
}


# ------------------------------- ledger -------------------------------------

DEFAULT_LEDGER_URL: str = "https://mempool.aiblock.ch"


__all__ = [
    "MAX_SHARD_SIZE_DEFAULT",
    "FILE_SIZE_LIMIT_DEFAULT",
    "MAX_SHARDS_DEFAULT",
    "MINT_AMOUNT_DEFAULT",
    "FILE_SIZE_HARD_CAP",
    "BYTE_MAP_SIZE",
    "SCHEMA_SHARD",
    "SCHEMA_BYTEMAP",
    "SCHEMA_IPFS_PINATA",
    "SCHEMA_DYNAMODB",
    "KNOWN_SCHEMAS",
    "KEY_GROUP_ID",
    "KEY_PREV_REF",
    "KEY_SCHEMA",
    "KEY_PAYLOAD",
    "LEGACY_KEYS",
    "DEFAULT_LEDGER_URL",
]
