"""
shardgate configuration.

This module defines the configuration surface of the gateway:
- Sharding limits (shard size, payload size, shard count, mint amount)
- Ledger endpoint, HTTP timeout/retry policy and discovery fan-out
- Logging level and output format

All fields have sensible defaults and can be overridden via environment
variables. Nothing here imports heavy dependencies.

Environment variables (all optional):

  # Sharding
  SHARDGATE_MAX_SHARD_SIZE=200          # bytes (supports KiB/MiB suffixes too)
  SHARDGATE_FILE_SIZE_LIMIT=1024        # bytes
  SHARDGATE_MAX_SHARDS=10
  SHARDGATE_MINT_AMOUNT=1

  # Ledger
  SHARDGATE_LEDGER_URL=https://mempool.aiblock.ch
  SHARDGATE_HTTP_TIMEOUT=30             # seconds, float
  SHARDGATE_HTTP_RETRIES=3
  SHARDGATE_HTTP_BACKOFF_BASE=0.25      # seconds, float
  SHARDGATE_DISCOVERY_CONCURRENCY=8

  # Logging
  SHARDGATE_LOG_LEVEL=INFO
  SHARDGATE_LOG_FORMAT=json             # json | text (unset: auto by TTY)

Explicit overrides passed to `load_config()` win over the environment.
"""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass, field, fields, replace
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

from .constants import (
    DEFAULT_LEDGER_URL,
    FILE_SIZE_HARD_CAP,
    FILE_SIZE_LIMIT_DEFAULT,
    MAX_SHARD_SIZE_DEFAULT,
    MAX_SHARDS_DEFAULT,
    MINT_AMOUNT_DEFAULT,
)
from .errors import InvalidInput


# ------------------------------- helpers ------------------------------------


_SIZE_RE = re.compile(
    r"^\s*(?P<num>(?:\d+)(?:\.\d+)?)\s*(?P<unit>bytes?|b|kb|kib|mb|mib)?\s*$",
    re.IGNORECASE,
)

_UNITS = {
    "b": 1,
    "byte": 1,
    "bytes": 1,
    "kb": 1000,
    "kib": 1024,
    "mb": 1000**2,
    "mib": 1024**2,
}


def _parse_size(value: Optional[str], *, default: int) -> int:
    """Parse human sizes like '200', '4KiB', '1MB' → bytes."""
    if not value:
        return default
    m = _SIZE_RE.match(value)
    if not m:
        raise InvalidInput(f"Invalid size: {value!r}")
    unit = (m.group("unit") or "b").lower()
    return int(float(m.group("num")) * _UNITS[unit])


def _getenv(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(key)
    return v if v is not None and v.strip() != "" else default


def _getenv_int(key: str, default: int) -> int:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return int(v.strip(), 10)
    except ValueError as e:
        raise InvalidInput(f"Invalid int for {key}: {v!r}") from e


def _getenv_float(key: str, default: float) -> float:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return float(v.strip())
    except ValueError as e:
        raise InvalidInput(f"Invalid float for {key}: {v!r}") from e


# ------------------------------- config -------------------------------------


@dataclass(frozen=True)
class ShardingConfig:
    """
    Limits applied on the push path.

    - max_shard_size: bytes per shard (the last shard may be shorter)
    - file_size_limit: largest payload a single push accepts
    - max_shards: largest number of shards a single push may produce
    - mint_amount: amount attached to every persisted record
    """
    max_shard_size: int = MAX_SHARD_SIZE_DEFAULT
    file_size_limit: int = FILE_SIZE_LIMIT_DEFAULT
    max_shards: int = MAX_SHARDS_DEFAULT
    mint_amount: int = MINT_AMOUNT_DEFAULT

    def validate(self) -> None:
        if self.max_shard_size <= 0:
            raise InvalidInput("max_shard_size must be > 0")
        if not (0 < self.file_size_limit <= FILE_SIZE_HARD_CAP):
            raise InvalidInput(f"file_size_limit must be in 1..{FILE_SIZE_HARD_CAP}")
        if self.max_shards <= 0:
            raise InvalidInput("max_shards must be > 0")
        if self.mint_amount <= 0:
            raise InvalidInput("mint_amount must be > 0")


@dataclass(frozen=True)
class LedgerConfig:
    """
    Ledger endpoint and the HTTP adapter's retry policy.
    """
    base_url: str = DEFAULT_LEDGER_URL
    timeout: float = 30.0
    retries: int = 3
    backoff_base: float = 0.25
    discovery_concurrency: int = 8

    def validate(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise InvalidInput("base_url must be an http(s) URL")
        if self.timeout <= 0:
            raise InvalidInput("timeout must be > 0")
        if self.retries < 0:
            raise InvalidInput("retries must be >= 0")
        if self.backoff_base < 0:
            raise InvalidInput("backoff_base must be >= 0")
        if self.discovery_concurrency <= 0:
            raise InvalidInput("discovery_concurrency must be > 0")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: Optional[str] = None  # "json" | "text" | None (auto)

    def validate(self) -> None:
        if self.level.upper() not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"):
            raise InvalidInput(f"unknown log level {self.level!r}")
        if self.fmt is not None and self.fmt not in ("json", "text"):
            raise InvalidInput("fmt must be 'json', 'text' or unset")


@dataclass(frozen=True)
class GatewayConfig:
    """
    Top-level gateway configuration.
    """
    sharding: ShardingConfig = field(default_factory=ShardingConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.sharding.validate()
        self.ledger.validate()
        self.logging.validate()

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


# ------------------------------- loader -------------------------------------


def _load_from_env() -> GatewayConfig:
    sharding = ShardingConfig(
        max_shard_size=_parse_size(_getenv("SHARDGATE_MAX_SHARD_SIZE"), default=MAX_SHARD_SIZE_DEFAULT),
        file_size_limit=_parse_size(_getenv("SHARDGATE_FILE_SIZE_LIMIT"), default=FILE_SIZE_LIMIT_DEFAULT),
        max_shards=_getenv_int("SHARDGATE_MAX_SHARDS", MAX_SHARDS_DEFAULT),
        mint_amount=_getenv_int("SHARDGATE_MINT_AMOUNT", MINT_AMOUNT_DEFAULT),
    )
    ledger = LedgerConfig(
        base_url=(_getenv("SHARDGATE_LEDGER_URL", DEFAULT_LEDGER_URL) or DEFAULT_LEDGER_URL).rstrip("/"),
        timeout=_getenv_float("SHARDGATE_HTTP_TIMEOUT", 30.0),
        retries=_getenv_int("SHARDGATE_HTTP_RETRIES", 3),
        backoff_base=_getenv_float("SHARDGATE_HTTP_BACKOFF_BASE", 0.25),
        discovery_concurrency=_getenv_int("SHARDGATE_DISCOVERY_CONCURRENCY", 8),
    )
    fmt = _getenv("SHARDGATE_LOG_FORMAT")
    log_cfg = LoggingConfig(
        level=(_getenv("SHARDGATE_LOG_LEVEL", "INFO") or "INFO").upper(),
        fmt=fmt.strip().lower() if fmt else None,
    )
    return GatewayConfig(sharding=sharding, ledger=ledger, logging=log_cfg)


def _apply_overrides(cfg: GatewayConfig, overrides: Mapping[str, Any]) -> GatewayConfig:
    """
    Apply overrides keyed either by section ("sharding": {...}) or by a bare
    field name that is unique across sections ("max_shard_size": 100).
    """
    sections = {f.name: getattr(cfg, f.name) for f in fields(cfg)}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in sections and isinstance(value, Mapping):
            sections[key] = replace(sections[key], **dict(value))
            continue
        owners = [name for name, sec in sections.items() if key in {f.name for f in fields(sec)}]
        if len(owners) != 1:
            raise InvalidInput(f"unknown config key {key!r}")
        sections[owners[0]] = replace(sections[owners[0]], **{key: value})
    return GatewayConfig(**sections)


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> GatewayConfig:
    """
    Build a validated config from the environment, then apply `overrides`.
    """
    cfg = _load_from_env()
    if overrides:
        cfg = _apply_overrides(cfg, overrides)
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_config() -> GatewayConfig:
    """
    Load and validate configuration (cached). Clear the cache in tests
    via `get_config.cache_clear()` to observe env changes.
    """
    return load_config()


# Pretty-print helper (useful in scripts and logs)
def format_config(cfg: Optional[GatewayConfig] = None) -> str:
    cfg = cfg or get_config()
    lines: List[str] = []
    for section, values in cfg.to_dict().items():
        for k, v in values.items():  # type: ignore[union-attr]
            lines.append(f"{section}.{k}: {v}")
    return "\n".join(lines)


__all__ = [
    "ShardingConfig",
    "LedgerConfig",
    "LoggingConfig",
    "GatewayConfig",
    "load_config",
    "get_config",
    "format_config",
]
