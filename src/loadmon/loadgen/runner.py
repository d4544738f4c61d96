from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import AsyncIterator, Callable

import httpx

from loadmon.config import ClientConfig, MonitorConfig, TestConfig
from loadmon.errors import RunControlError
from loadmon.loadgen.client import create_client
from loadmon.loadgen.pool import WorkerPool
from loadmon.metrics import LiveMetricsSnapshot, MetricsAggregator, TestResult
from loadmon.monitor import MonitorSampler, SnapshotSink, SystemSource

logger = logging.getLogger(__name__)

SNAPSHOT_BUFFER = 1024

_END = object()


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class LoadTestRun:
    """Handle to one in-progress run: a result future plus a snapshot stream."""

    def __init__(
        self,
        config: TestConfig,
        task: asyncio.Task[TestResult],
        snapshots: asyncio.Queue[object],
        cancel_event: asyncio.Event,
    ) -> None:
        self.config = config
        self._task = task
        self._snapshots = snapshots
        self._cancel_event = cancel_event

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Request early termination; ``result()`` then returns partial counts."""
        self._cancel_event.set()

    async def result(self) -> TestResult:
        return await asyncio.shield(self._task)

    async def wait_closed(self) -> None:
        """Wait for the run to reach a terminal state, whatever the outcome."""
        await asyncio.gather(self._task, return_exceptions=True)

    async def snapshots(self) -> AsyncIterator[LiveMetricsSnapshot]:
        """Yield live snapshots in emission order until the run ends."""
        while True:
            item = await self._snapshots.get()
            if item is _END:
                # leave the marker for any other consumer
                _offer(self._snapshots, _END)
                return
            yield item  # type: ignore[misc]


class RunController:
    """Owns the lifecycle of load-test runs, one at a time.

    ``IDLE -> RUNNING -> COMPLETED | CANCELLED | FAILED``. A controller can be
    reused once its current run has reached a terminal state.
    """

    def __init__(
        self,
        client_config: ClientConfig | None = None,
        monitor_config: MonitorConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        system: SystemSource | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.client_config = client_config or ClientConfig()
        self.monitor_config = monitor_config or MonitorConfig()
        self._transport = transport
        self._system = system
        self._clock = clock
        self._state = RunState.IDLE
        self._current: LoadTestRun | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def current(self) -> LoadTestRun | None:
        return self._current

    async def start_run(self, config: TestConfig, sink: SnapshotSink | None = None) -> LoadTestRun:
        config.validate()
        if self._state is RunState.RUNNING:
            msg = "A load test is already running on this controller"
            raise RunControlError(msg)
        self._state = RunState.RUNNING
        queue: asyncio.Queue[object] = asyncio.Queue(maxsize=SNAPSHOT_BUFFER)
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self._execute(config, sink, queue, cancel_event),
            name="loadmon-run",
        )
        self._current = LoadTestRun(config, task, queue, cancel_event)
        return self._current

    async def run(self, config: TestConfig, sink: SnapshotSink | None = None) -> TestResult:
        handle = await self.start_run(config, sink)
        try:
            return await handle.result()
        except asyncio.CancelledError:
            # propagate to the workers and sampler before unwinding
            handle.cancel()
            await handle.wait_closed()
            raise

    def cancel(self) -> None:
        if self._current is not None and self._state is RunState.RUNNING:
            self._current.cancel()

    async def _execute(
        self,
        config: TestConfig,
        sink: SnapshotSink | None,
        queue: asyncio.Queue[object],
        cancel_event: asyncio.Event,
    ) -> TestResult:
        logger.info(
            "starting load test: url=%s concurrency=%d duration=%ds monitoring=%s",
            config.url,
            config.concurrency,
            config.duration,
            config.enable_monitoring,
        )
        aggregator = MetricsAggregator()
        sampler: MonitorSampler | None = None
        cancelled = False

        def publish(snapshot: LiveMetricsSnapshot) -> None:
            _offer(queue, snapshot)
            if sink is not None:
                sink(snapshot)

        try:
            async with create_client(self.client_config, config.concurrency, self._transport) as client:
                pool = WorkerPool(client, config.url.strip(), config.concurrency, self.client_config)
                try:
                    started = self._clock()
                    pool.start(aggregator.record, deadline=started + config.duration)
                    if config.enable_monitoring:
                        sampler = MonitorSampler(aggregator, self._system, self.monitor_config, self._clock)
                        sampler.start(publish)
                    cancelled = await _wait_for_pool(pool, cancel_event)
                    if sampler is not None:
                        await sampler.stop()
                    result = aggregator.finalize(self._clock() - started)
                except BaseException:
                    if sampler is not None:
                        await sampler.stop()
                    await pool.stop(drain=False)
                    raise
        except asyncio.CancelledError:
            self._state = RunState.CANCELLED
            raise
        except BaseException:
            self._state = RunState.FAILED
            logger.exception("load test against %s failed", config.url)
            raise
        finally:
            _offer(queue, _END)

        self._state = RunState.CANCELLED if cancelled else RunState.COMPLETED
        logger.info(
            "load test %s: total=%d ok=%d failed=%d rps=%.2f avg_latency=%dms errors=%s",
            self._state.value,
            result.total_requests,
            result.successful_requests,
            result.failed_requests,
            result.requests_per_second,
            result.average_latency,
            result.error_stats.to_dict(),
        )
        return result


async def _wait_for_pool(pool: WorkerPool, cancel_event: asyncio.Event) -> bool:
    """Wait for the workers to reach the deadline. Returns True if cancelled first."""
    finished = asyncio.create_task(pool.wait())
    cancel_requested = asyncio.create_task(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({finished, cancel_requested}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        finished.cancel()
        cancel_requested.cancel()
        raise
    if finished in done:
        cancel_requested.cancel()
        await asyncio.gather(cancel_requested, return_exceptions=True)
        finished.result()
        return False
    await pool.stop(drain=False)
    finished.cancel()
    await asyncio.gather(finished, return_exceptions=True)
    return True


def _offer(queue: asyncio.Queue[object], item: object) -> None:
    # drop the oldest snapshot rather than block the sampler
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(item)
