from __future__ import annotations

import math
import threading

import numpy as np

from loadmon.errors import AggregatorClosedError
from loadmon.metrics.models import (
    AggregateSnapshot,
    Classification,
    ErrorStats,
    LatencyPercentiles,
    RequestOutcome,
    TestResult,
)

# Upper bucket edges in milliseconds, ~2.8% relative width from 0.1 ms to 2 min.
_BUCKET_EDGES_MS = np.geomspace(0.1, 120_000.0, num=512)


class LatencyHistogram:
    """Fixed log-bucketed latency histogram.

    Memory is constant regardless of how many outcomes are recorded; the
    reported percentile is the upper edge of the bucket holding that rank.
    """

    def __init__(self, edges_ms: np.ndarray = _BUCKET_EDGES_MS) -> None:
        self._edges = edges_ms
        self._counts = np.zeros(len(edges_ms) + 1, dtype=np.int64)

    @property
    def count(self) -> int:
        return int(self._counts.sum())

    def bucket_for(self, latency_ms: float) -> int:
        return int(np.searchsorted(self._edges, latency_ms, side="left"))

    def add(self, bucket: int) -> None:
        self._counts[bucket] += 1

    def percentiles(self, *ps: float) -> list[float]:
        cumulative = np.cumsum(self._counts)
        total = int(cumulative[-1])
        if total == 0:
            return [0.0 for _ in ps]
        values: list[float] = []
        last_edge = len(self._edges) - 1
        for p in ps:
            rank = max(1, math.ceil(p / 100.0 * total))
            idx = int(np.searchsorted(cumulative, rank, side="left"))
            values.append(float(self._edges[min(idx, last_edge)]))
        return values


class MetricsAggregator:
    """Running totals shared by every worker of one run.

    All mutation goes through ``record`` under a single lock held only for a
    handful of integer updates. ``snapshot`` never mutates. ``finalize`` freezes
    the aggregator; later writes raise ``AggregatorClosedError``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._successful = 0
        self._errors: dict[Classification, int] = {
            Classification.CONNECTION_ERROR: 0,
            Classification.TIMEOUT_ERROR: 0,
            Classification.HTTP_ERROR: 0,
            Classification.OTHER_ERROR: 0,
        }
        self._mean_latency_ms = 0.0
        self._histogram = LatencyHistogram()
        self._result: TestResult | None = None

    @property
    def finalized(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> TestResult | None:
        return self._result

    def record(self, outcome: RequestOutcome) -> None:
        latency = max(0.0, outcome.latency_ms)
        bucket = self._histogram.bucket_for(latency)
        with self._lock:
            if self._result is not None:
                msg = "Aggregator is finalized; no further outcomes accepted"
                raise AggregatorClosedError(msg)
            self._total += 1
            if outcome.classification is Classification.SUCCESS:
                self._successful += 1
            else:
                self._errors[outcome.classification] += 1
            # Welford running mean
            self._mean_latency_ms += (latency - self._mean_latency_ms) / self._total
            self._histogram.add(bucket)

    def snapshot(self) -> AggregateSnapshot:
        with self._lock:
            return self._read()

    def finalize(self, elapsed_sec: float) -> TestResult:
        with self._lock:
            if self._result is not None:
                msg = "Aggregator has already been finalized"
                raise AggregatorClosedError(msg)
            snap = self._read()
            rps = snap.total_requests / elapsed_sec if elapsed_sec > 0 else 0.0
            self._result = TestResult(
                total_requests=snap.total_requests,
                successful_requests=snap.successful_requests,
                failed_requests=snap.failed_requests,
                requests_per_second=rps,
                average_latency_ms=snap.mean_latency_ms,
                error_stats=snap.error_stats,
                elapsed_sec=max(0.0, elapsed_sec),
                latency_percentiles=snap.latency_percentiles,
            )
            return self._result

    def _read(self) -> AggregateSnapshot:
        # caller holds self._lock
        p50, p90, p95, p99 = self._histogram.percentiles(50, 90, 95, 99)
        return AggregateSnapshot(
            total_requests=self._total,
            successful_requests=self._successful,
            failed_requests=self._total - self._successful,
            mean_latency_ms=self._mean_latency_ms,
            error_stats=ErrorStats(
                connection_errors=self._errors[Classification.CONNECTION_ERROR],
                timeout_errors=self._errors[Classification.TIMEOUT_ERROR],
                http_errors=self._errors[Classification.HTTP_ERROR],
                other_errors=self._errors[Classification.OTHER_ERROR],
            ),
            latency_percentiles=LatencyPercentiles(
                p50=int(round(p50)),
                p90=int(round(p90)),
                p95=int(round(p95)),
                p99=int(round(p99)),
            ),
        )
