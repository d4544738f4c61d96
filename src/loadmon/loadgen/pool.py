from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

import httpx

from loadmon.config import ClientConfig
from loadmon.errors import AggregatorClosedError, RunControlError
from loadmon.loadgen.client import send_request
from loadmon.metrics import RequestOutcome

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[RequestOutcome], None]


class WorkerPool:
    """Closed-loop load: ``concurrency`` workers, one request in flight each.

    Every worker sends a request, hands the outcome to ``on_outcome`` and
    immediately starts the next one until the deadline passes or the pool is
    stopped. A request still in flight at the deadline is allowed to finish
    and is counted.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        concurrency: int,
        client_config: ClientConfig | None = None,
    ) -> None:
        self._client = client
        self._url = url
        self._concurrency = concurrency
        self._config = client_config or ClientConfig()
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()
        self._deadline = 0.0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self, on_outcome: OutcomeCallback, deadline: float) -> None:
        """Spawn the workers. ``deadline`` is a ``time.perf_counter`` instant."""
        if self._tasks:
            msg = "Worker pool already started"
            raise RunControlError(msg)
        self._deadline = deadline
        self._tasks = [
            asyncio.create_task(self._worker(i, on_outcome), name=f"loadmon-worker-{i}")
            for i in range(self._concurrency)
        ]
        logger.debug("started %d workers against %s", self._concurrency, self._url)

    async def wait(self) -> None:
        """Wait until every worker has exited on its own."""
        if self._tasks:
            await asyncio.gather(*self._tasks)

    async def stop(self, drain: bool = True) -> None:
        """Stop issuing new requests.

        With ``drain`` the in-flight requests finish and are counted; otherwise
        they are cancelled and dropped. Returns once no worker task is alive.
        """
        self._stopping.set()
        if not drain:
            for task in self._tasks:
                task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("worker exited with error: %r", result)

    async def _worker(self, worker_id: int, on_outcome: OutcomeCallback) -> None:
        sent = 0
        while not self._stopping.is_set():
            remaining = self._deadline - time.perf_counter()
            if remaining <= 0:
                break
            outcome = await self._send(remaining)
            try:
                on_outcome(outcome)
            except AggregatorClosedError:
                break
            sent += 1
        logger.debug("worker %d finished after %d requests", worker_id, sent)

    async def _send(self, remaining: float) -> RequestOutcome:
        timeout = self._config.timeout_sec
        connect = self._config.connect_timeout_sec
        total: float | None = None
        if self._config.cap_timeout_to_deadline:
            timeout = min(timeout, remaining)
            connect = min(connect, remaining)
            total = remaining
        return await send_request(
            self._client,
            self._url,
            method=self._config.method,
            timeout_sec=timeout,
            connect_timeout_sec=connect,
            total_timeout_sec=total,
        )
