import pytest

from shardgate.config import (
    GatewayConfig,
    LedgerConfig,
    ShardingConfig,
    format_config,
    get_config,
    load_config,
)
from shardgate.errors import InvalidInput


def test_defaults():
    cfg = load_config()
    assert cfg.sharding == ShardingConfig(max_shard_size=200, file_size_limit=1024, max_shards=10, mint_amount=1)
    assert cfg.ledger.base_url == "https://mempool.aiblock.ch"
    assert cfg.ledger.retries == 3
    assert cfg.logging.fmt is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SHARDGATE_MAX_SHARD_SIZE", "1KiB")
    monkeypatch.setenv("SHARDGATE_FILE_SIZE_LIMIT", "2MB")
    monkeypatch.setenv("SHARDGATE_MAX_SHARDS", "5000")
    monkeypatch.setenv("SHARDGATE_LEDGER_URL", "http://localhost:3003/")
    monkeypatch.setenv("SHARDGATE_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("SHARDGATE_LOG_LEVEL", "debug")
    monkeypatch.setenv("SHARDGATE_LOG_FORMAT", "TEXT")

    cfg = load_config()
    assert cfg.sharding.max_shard_size == 1024
    assert cfg.sharding.file_size_limit == 2_000_000
    assert cfg.sharding.max_shards == 5000
    assert cfg.ledger.base_url == "http://localhost:3003"
    assert cfg.ledger.timeout == 2.5
    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.fmt == "text"


def test_explicit_overrides_win(monkeypatch):
    monkeypatch.setenv("SHARDGATE_MAX_SHARD_SIZE", "300")
    cfg = load_config({"max_shard_size": 50, "ledger": {"retries": 0}})
    assert cfg.sharding.max_shard_size == 50
    assert cfg.ledger.retries == 0


def test_unknown_override_rejected():
    with pytest.raises(InvalidInput):
        load_config({"no_such_field": 1})


@pytest.mark.parametrize(
    "env,value",
    [
        ("SHARDGATE_MAX_SHARD_SIZE", "0"),
        ("SHARDGATE_MAX_SHARD_SIZE", "lots"),
        ("SHARDGATE_MAX_SHARDS", "ten"),
        ("SHARDGATE_LEDGER_URL", "ftp://ledger"),
        ("SHARDGATE_HTTP_TIMEOUT", "-1"),
        ("SHARDGATE_LOG_FORMAT", "xml"),
    ],
)
def test_invalid_env(monkeypatch, env, value):
    monkeypatch.setenv(env, value)
    with pytest.raises(InvalidInput):
        load_config()


def test_get_config_is_cached(monkeypatch):
    first = get_config()
    monkeypatch.setenv("SHARDGATE_MAX_SHARDS", "3")
    assert get_config() is first
    get_config.cache_clear()
    assert get_config().sharding.max_shards == 3


def test_format_config():
    text = format_config(GatewayConfig(ledger=LedgerConfig(base_url="http://x")))
    assert "sharding.max_shard_size: 200" in text
    assert "ledger.base_url: http://x" in text
