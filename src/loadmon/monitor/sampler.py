from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Protocol

from loadmon.config import MonitorConfig, RpsMode
from loadmon.metrics import LiveMetricsSnapshot, MetricsAggregator, SystemMetrics
from loadmon.monitor.system import SystemSampler

logger = logging.getLogger(__name__)

SnapshotSink = Callable[[LiveMetricsSnapshot], None]


class SystemSource(Protocol):
    def sample(self) -> SystemMetrics:
        ...


class RateTracker:
    """Throughput from successive (time, total) observations."""

    def __init__(self, mode: RpsMode, window_sec: float, started: float, initial_total: int = 0) -> None:
        self.mode = mode
        self.window_sec = window_sec
        self._started = started
        self._history: deque[tuple[float, int]] = deque([(started, initial_total)])
        self._initial_total = initial_total

    def observe(self, now: float, total: int) -> float:
        if self.mode is RpsMode.CUMULATIVE:
            return _rate(total - self._initial_total, now - self._started)
        previous_time, previous_total = self._history[-1]
        self._history.append((now, total))
        if self.mode is RpsMode.INSTANTANEOUS:
            self._history.popleft()
            return _rate(total - previous_total, now - previous_time)
        cutoff = now - self.window_sec
        while len(self._history) > 2 and self._history[1][0] <= cutoff:
            self._history.popleft()
        oldest_time, oldest_total = self._history[0]
        return _rate(total - oldest_total, now - oldest_time)


class MonitorSampler:
    """Periodic live-metrics emitter for one run.

    Reads the aggregator without mutating it, samples host resources and hands
    a ``LiveMetricsSnapshot`` to the sink every ``sample_period_sec``. Nothing
    is emitted once ``stop`` was called or the aggregator is finalized.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        system: SystemSource | None = None,
        config: MonitorConfig | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._aggregator = aggregator
        self._system = system or SystemSampler()
        self._config = config or MonitorConfig()
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self._rates: RateTracker | None = None
        self.emitted = 0

    def start(self, sink: SnapshotSink) -> None:
        if self._task is not None:
            return
        started = self._clock()
        self._rates = RateTracker(
            self._config.rps_mode,
            self._config.rps_window_sec,
            started,
            self._aggregator.snapshot().total_requests,
        )
        self._task = asyncio.create_task(self._run(sink, started), name="loadmon-monitor")

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def sample_once(self) -> LiveMetricsSnapshot:
        if self._rates is None:
            self._rates = RateTracker(self._config.rps_mode, self._config.rps_window_sec, self._clock())
        snap = self._aggregator.snapshot()
        rps = self._rates.observe(self._clock(), snap.total_requests)
        return LiveMetricsSnapshot(
            rps=rps,
            total_requests=snap.total_requests,
            successful_requests=snap.successful_requests,
            failed_requests=snap.failed_requests,
            system_metrics=self._sample_system(),
            average_latency_ms=snap.mean_latency_ms,
            latency_percentiles=snap.latency_percentiles,
        )

    def _sample_system(self) -> SystemMetrics:
        try:
            return self._system.sample()
        except Exception as exc:  # noqa: BLE001
            logger.warning("system sampling failed: %s", exc)
            return SystemMetrics()

    async def _run(self, sink: SnapshotSink, started: float) -> None:
        period = self._config.sample_period_sec
        next_tick = started + period
        while True:
            delay = next_tick - self._clock()
            if delay > 0:
                await asyncio.sleep(delay)
            next_tick += period
            if next_tick < self._clock():
                next_tick = self._clock() + period
            if self._stopped or self._aggregator.finalized:
                return
            snapshot = self.sample_once()
            try:
                sink(snapshot)
            except Exception:
                logger.exception("live metrics sink raised; continuing")
            self.emitted += 1


def _rate(count: int, elapsed: float) -> float:
    if elapsed <= 0:
        return 0.0
    return count / elapsed
