from __future__ import annotations

import logging
import time

import psutil

from loadmon.metrics import SystemMetrics

logger = logging.getLogger(__name__)


class SystemSampler:
    """Host CPU, memory and network throughput via psutil.

    CPU is measured between consecutive calls, so the first call after
    construction reflects the interval since ``__init__``. Failures fall back
    to the last good reading.
    """

    def __init__(self) -> None:
        self._last = SystemMetrics()
        self._last_net_bytes: int | None = None
        self._last_net_time = time.perf_counter()
        try:
            psutil.cpu_percent(interval=None)
            self._last_net_bytes = _net_bytes()
        except (psutil.Error, OSError) as exc:
            logger.warning("system metrics unavailable: %s", exc)

    @property
    def last(self) -> SystemMetrics:
        return self._last

    def sample(self) -> SystemMetrics:
        try:
            cpu = psutil.cpu_percent(interval=None)
            memory = psutil.virtual_memory().percent
        except (psutil.Error, OSError) as exc:
            logger.warning("cpu/memory sampling failed, reusing last value: %s", exc)
            return self._last
        self._last = SystemMetrics(
            cpu_usage=_clamp_pct(cpu),
            memory_usage=_clamp_pct(memory),
            network_io=self._network_rate(),
        )
        return self._last

    def _network_rate(self) -> int:
        now = time.perf_counter()
        try:
            current = _net_bytes()
        except (psutil.Error, OSError) as exc:
            logger.warning("network sampling failed: %s", exc)
            return self._last.network_io
        previous, previous_time = self._last_net_bytes, self._last_net_time
        self._last_net_bytes, self._last_net_time = current, now
        elapsed = now - previous_time
        if previous is None or elapsed <= 0 or current < previous:
            return 0
        return int((current - previous) / elapsed)


def _net_bytes() -> int:
    counters = psutil.net_io_counters()
    if counters is None:
        return 0
    return counters.bytes_sent + counters.bytes_recv


def _clamp_pct(value: float) -> float:
    return max(0.0, min(100.0, float(value)))
