"""
Prometheus metrics for shardgate.

Counters and histograms for both sides of the gateway:
- push: shards persisted, push failures, payload sizes
- pull: records discovered / skipped, reconstruction outcomes and timings

Typical usage:

    from shardgate.metrics import get_metrics

    METRICS = get_metrics()

    with METRICS.time_reconstruct() as t:
        records = reconstruct_chain(items, group_id)
        t.ok()  # or t.fail("data_integrity")

Tests (or embedders running several gateways) pass their own registry:

    metrics = GatewayMetrics(registry=CollectorRegistry())
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class GatewayMetrics:
    """
    Instruments for one gateway, registered on `registry` (default: global).
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        reg = registry if registry is not None else REGISTRY
        self.registry = reg

        self.shards_pushed_total = Counter(
            "shardgate_shards_pushed_total",
            "Shard records persisted by push",
            registry=reg,
        )
        self.push_failures_total = Counter(
            "shardgate_push_failures_total",
            "Pushes aborted by a failing persist call",
            registry=reg,
        )
        self.push_payload_size = Histogram(
            "shardgate_push_payload_size_bytes",
            "Distribution of pushed payload sizes (bytes)",
            registry=reg,
            buckets=(64, 256, 1_024, 4_096, 16_384, 65_536, 262_144, 1_048_576),
        )
        self.records_discovered_total = Counter(
            "shardgate_records_discovered_total",
            "Shard records decoded from discovered ledger items",
            registry=reg,
        )
        self.records_skipped_total = Counter(
            "shardgate_records_skipped_total",
            "Discovered ledger items skipped (not shard records or malformed)",
            ["reason"],
            registry=reg,
        )
        self.reconstructions_total = Counter(
            "shardgate_reconstructions_total",
            "Chain reconstructions by result",
            ["result"],
            registry=reg,
        )
        self.reconstruct_seconds = Histogram(
            "shardgate_reconstruct_seconds",
            "Chain reconstruction duration (seconds)",
            registry=reg,
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
        )

    # ----------------------------- push helpers ------------------------------

    def note_push(self, *, shards: int, size_bytes: int) -> None:
        self.shards_pushed_total.inc(shards)
        self.push_payload_size.observe(float(size_bytes))

    def note_push_failure(self) -> None:
        self.push_failures_total.inc()

    # ----------------------------- pull helpers ------------------------------

    def note_discovered(self, count: int) -> None:
        if count > 0:
            self.records_discovered_total.inc(count)

    def note_skipped(self, *, reason: str) -> None:
        self.records_skipped_total.labels(reason).inc()

    @contextmanager
    def time_reconstruct(self) -> Iterator["_Outcome"]:
        """
        Time one reconstruction. The outcome defaults to "ok"; an exception
        escaping the block is recorded as "error" unless `fail()` named it.
        """
        start = time.perf_counter()
        outcome = _Outcome()
        try:
            yield outcome
        except BaseException:
            if outcome.result == "ok":
                outcome.result = "error"
            raise
        finally:
            self.reconstructions_total.labels(outcome.result).inc()
            self.reconstruct_seconds.observe(max(0.0, time.perf_counter() - start))


class _Outcome:
    result: str = "ok"

    def ok(self) -> None:
        self.result = "ok"

    def fail(self, result: str = "error") -> None:
        self.result = result


# ------------------------------- public API ----------------------------------

_METRICS_SINGLETON: Optional[GatewayMetrics] = None


def get_metrics() -> GatewayMetrics:
    """Return the process-wide GatewayMetrics on the default registry."""
    global _METRICS_SINGLETON
    if _METRICS_SINGLETON is None:
        _METRICS_SINGLETON = GatewayMetrics()
    return _METRICS_SINGLETON


__all__ = ["GatewayMetrics", "get_metrics"]
