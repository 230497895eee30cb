"""
shardgate • adapters • HTTP ledger client

Async client for a mempool-style ledger API. Implements RecordPersister and
ItemDiscoverer.

Endpoints (conventions)
-----------------------
- POST {base}/create_item_asset
    Body JSON:
      {"item_amount": 1, "script_public_key": "<address>",
       "genesis_hash_spec": "Default", "metadata": "<record json>",
       ...fields returned by `signer`}
    Returns JSON carrying the transaction hash, either at the top level
    {"tx_hash": "<ref>"} or nested as {"content": {"tx_hash": "<ref>"}}.

- POST {base}/fetch_balance
    Body JSON: {"address_list": ["<address>", ...]}
    Returns the balance envelope parsed by
    `shardgate.discovery.parse_balance_response`.

This client:
- Retries transport errors, timeouts, 429 and 5xx with exponential backoff.
- Raises ExternalServiceError for everything else (and once retries run out).
- Owns an httpx.AsyncClient unless one is injected; use `async with`.

Signing is not done here. Ledgers that require signed requests get a `signer`
callable that receives the record's metadata text and returns the extra body
fields (public key, signature, ...).
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

import httpx

from ..codec.records import Record, encode_metadata
from ..config import LedgerConfig
from ..discovery import parse_balance_response
from ..errors import ExternalServiceError
from ..interfaces import DiscoveryResult
from ..logging import get_logger

log = get_logger(__name__)

Signer = Callable[[str], Mapping[str, Any]]

_RETRY_STATUS = frozenset({429, 500, 502, 503, 504})


class HttpLedger:
    """
    Async ledger client with retries.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        config: Optional[LedgerConfig] = None,
        default_address: Optional[str] = None,
        signer: Optional[Signer] = None,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        cfg = config or LedgerConfig()
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.timeout = cfg.timeout
        self.retries = cfg.retries
        self.backoff_base = cfg.backoff_base
        self.default_address = default_address
        self.signer = signer

        hdrs = {"Accept": "application/json", "Content-Type": "application/json"}
        if headers:
            hdrs.update(headers)

        self._own_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, headers=hdrs, timeout=self.timeout
        )

    # --- context management

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpLedger":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --- RecordPersister

    async def persist(self, record: Record, *, amount: int = 1) -> str:
        address = record.owner_address or self.default_address
        if not address:
            raise ExternalServiceError("no address to mint the record to")

        metadata = encode_metadata(record)
        body: Dict[str, Any] = {
            "item_amount": int(amount),
            "script_public_key": address,
            "genesis_hash_spec": "Default",
            "metadata": metadata,
        }
        if self.signer is not None:
            body.update(self.signer(metadata))

        resp = await self._retry_request(
            lambda: self._client.post("/create_item_asset", json=body),
            path="/create_item_asset",
        )
        payload = _json(resp)
        ref = _find_tx_hash(payload)
        if not ref:
            raise ExternalServiceError(
                "ledger response carries no tx_hash",
                data={"path": "/create_item_asset", "status": resp.status_code},
            )
        log.debug("record persisted", extra={"ref": ref, "address": address})
        return ref

    # --- ItemDiscoverer

    async def discover(self, addresses: Sequence[str]) -> DiscoveryResult:
        body = {"address_list": list(addresses)}
        resp = await self._retry_request(
            lambda: self._client.post("/fetch_balance", json=body),
            path="/fetch_balance",
        )
        payload = _json(resp)
        if not isinstance(payload, Mapping):
            raise ExternalServiceError("balance response is not a JSON object")
        result = parse_balance_response(payload)
        for address in addresses:
            result.setdefault(address, {})
        return result

    # --- internals

    async def _retry_request(
        self,
        op: Callable[[], Awaitable[httpx.Response]],
        *,
        path: str,
    ) -> httpx.Response:
        attempts = max(1, self.retries + 1)
        for attempt in range(attempts):
            last = attempt >= attempts - 1
            try:
                resp = await op()
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if last:
                    raise ExternalServiceError.from_exc(e, data={"path": path, "attempts": attempts}) from e
                log.debug("ledger request failed, retrying", extra={"path": path, "attempt": attempt})
                await asyncio.sleep(self._backoff(attempt))
                continue

            if resp.status_code in _RETRY_STATUS and not last:
                log.debug(
                    "ledger busy, retrying",
                    extra={"path": path, "attempt": attempt, "status": resp.status_code},
                )
                await asyncio.sleep(self._backoff(attempt))
                continue
            self._raise_for_status(resp, path=path)
            return resp
        raise AssertionError("unreachable")  # pragma: no cover

    def _backoff(self, attempt: int) -> float:
        # attempt: 0,1,2,… -> base * 2^attempt with a little per-process jitter
        base = self.backoff_base
        return base * (2 ** attempt) + (0.1 * base * (os.getpid() % 7) / 7.0)

    @staticmethod
    def _raise_for_status(resp: httpx.Response, *, path: str) -> None:
        if resp.is_success:
            return
        detail: Any = None
        try:
            j = resp.json()
            detail = (j.get("detail") or j.get("error") or j) if isinstance(j, dict) else j
        except ValueError:
            detail = resp.text[:200] or None
        raise ExternalServiceError(
            f"HTTP {resp.status_code} for POST {path}",
            data={"path": path, "status": resp.status_code, "detail": detail},
        )


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise ExternalServiceError("ledger returned invalid JSON", data={"status": resp.status_code}) from e


def _find_tx_hash(payload: Any) -> Optional[str]:
    node = payload
    for _ in range(3):
        if not isinstance(node, Mapping):
            return None
        ref = node.get("tx_hash")
        if isinstance(ref, str) and ref:
            return ref
        node = node.get("content")
    return None


__all__ = ["HttpLedger", "Signer"]
