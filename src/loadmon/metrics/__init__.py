from __future__ import annotations

from loadmon.metrics.aggregator import LatencyHistogram, MetricsAggregator
from loadmon.metrics.models import (
    AggregateSnapshot,
    Classification,
    ErrorStats,
    LatencyPercentiles,
    LiveMetricsSnapshot,
    RequestOutcome,
    SystemMetrics,
    TestResult,
)

__all__ = [
    "AggregateSnapshot",
    "Classification",
    "ErrorStats",
    "LatencyHistogram",
    "LatencyPercentiles",
    "LiveMetricsSnapshot",
    "MetricsAggregator",
    "RequestOutcome",
    "SystemMetrics",
    "TestResult",
]
