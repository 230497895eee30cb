"""
shardgate • adapters

Ledger collaborators implementing RecordPersister and ItemDiscoverer:

- memory.InMemoryLedger    — process-local, with failure injection for tests
- http_ledger.HttpLedger   — httpx-based client for a mempool-style ledger API
"""

from __future__ import annotations

from .http_ledger import HttpLedger
from .memory import InMemoryLedger

__all__ = ["InMemoryLedger", "HttpLedger"]
