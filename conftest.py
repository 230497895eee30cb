import os

import pytest

from shardgate import logging as slog
from shardgate.config import get_config


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """
    Run every test against default configuration and an empty log context:
    drop SHARDGATE_* variables from the environment and reset cached config.
    """
    for key in list(os.environ):
        if key.startswith("SHARDGATE_"):
            monkeypatch.delenv(key, raising=False)
    get_config.cache_clear()
    slog.clear_context()
    yield
    get_config.cache_clear()
    slog.clear_context()
