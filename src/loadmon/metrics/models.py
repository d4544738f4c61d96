from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class Classification(str, Enum):
    SUCCESS = "success"
    CONNECTION_ERROR = "connection_error"
    TIMEOUT_ERROR = "timeout_error"
    HTTP_ERROR = "http_error"
    OTHER_ERROR = "other_error"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    latency_ms: float
    classification: Classification
    status_code: int | None = None

    @property
    def success(self) -> bool:
        return self.classification is Classification.SUCCESS


@dataclass(frozen=True, slots=True)
class ErrorStats:
    connection_errors: int = 0
    timeout_errors: int = 0
    http_errors: int = 0
    other_errors: int = 0

    @property
    def total(self) -> int:
        return self.connection_errors + self.timeout_errors + self.http_errors + self.other_errors

    def to_dict(self) -> dict[str, int]:
        return {
            "connection_errors": self.connection_errors,
            "timeout_errors": self.timeout_errors,
            "http_errors": self.http_errors,
            "other_errors": self.other_errors,
        }


@dataclass(frozen=True, slots=True)
class LatencyPercentiles:
    p50: int = 0
    p90: int = 0
    p95: int = 0
    p99: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"p50": self.p50, "p90": self.p90, "p95": self.p95, "p99": self.p99}


@dataclass(frozen=True, slots=True)
class AggregateSnapshot:
    """Point-in-time counters read from the aggregator."""

    total_requests: int
    successful_requests: int
    failed_requests: int
    mean_latency_ms: float
    error_stats: ErrorStats
    latency_percentiles: LatencyPercentiles


@dataclass(frozen=True, slots=True)
class TestResult:
    total_requests: int
    successful_requests: int
    failed_requests: int
    requests_per_second: float
    average_latency_ms: float
    error_stats: ErrorStats
    elapsed_sec: float
    latency_percentiles: LatencyPercentiles = field(default_factory=LatencyPercentiles)

    __test__ = False

    @property
    def average_latency(self) -> int:
        return int(round(self.average_latency_ms))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "requests_per_second": float(self.requests_per_second),
            "average_latency": self.average_latency,
            "error_stats": self.error_stats.to_dict(),
            "latency_percentiles": self.latency_percentiles.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class SystemMetrics:
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    network_io: int = 0

    def to_dict(self) -> Mapping[str, Any]:
        return {
            "cpu_usage": float(self.cpu_usage),
            "memory_usage": float(self.memory_usage),
            "network_io": self.network_io,
        }


@dataclass(frozen=True, slots=True)
class LiveMetricsSnapshot:
    rps: float
    total_requests: int
    successful_requests: int
    failed_requests: int
    system_metrics: SystemMetrics
    average_latency_ms: float = 0.0
    latency_percentiles: LatencyPercentiles = field(default_factory=LatencyPercentiles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rps": float(self.rps),
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_latency": int(round(self.average_latency_ms)),
            "latency_percentiles": self.latency_percentiles.to_dict(),
            "system_metrics": dict(self.system_metrics.to_dict()),
        }
