from __future__ import annotations

import asyncio

import httpx
import pytest

from loadmon.metrics import SystemMetrics


class FakeSystem:
    def __init__(self, cpu: float = 12.5, memory: float = 40.0) -> None:
        self.metrics = SystemMetrics(cpu_usage=cpu, memory_usage=memory, network_io=0)
        self.calls = 0

    def sample(self) -> SystemMetrics:
        self.calls += 1
        return self.metrics


def delayed_transport(status: int = 200, delay: float = 0.005) -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay)
        return httpx.Response(status, text="ok")

    return httpx.MockTransport(handler)


@pytest.fixture
def fake_system() -> FakeSystem:
    return FakeSystem()
