from __future__ import annotations

from typing import Any

import pytest

from conftest import FakeSystem, delayed_transport
from loadmon.commands import run_load_test, run_load_test_with_monitoring
from loadmon.config import MonitorConfig
from loadmon.errors import ConfigError
from loadmon.events import LOAD_TEST_METRICS, EventEmitter
from loadmon.loadgen.runner import RunController

RESULT_KEYS = {
    "total_requests",
    "successful_requests",
    "failed_requests",
    "requests_per_second",
    "average_latency",
    "error_stats",
}


def _controller(fake_system: FakeSystem) -> RunController:
    return RunController(
        transport=delayed_transport(),
        system=fake_system,
        monitor_config=MonitorConfig(sample_period_sec=0.2),
    )


@pytest.mark.asyncio
async def test_run_load_test_returns_wire_shape(fake_system: FakeSystem) -> None:
    result = await run_load_test(
        {"url": "http://target.test/", "concurrency": 2, "duration": 1},
        controller=_controller(fake_system),
    )
    assert RESULT_KEYS <= set(result)
    assert set(result["error_stats"]) == {"connection_errors", "timeout_errors", "http_errors", "other_errors"}
    assert isinstance(result["requests_per_second"], float)
    assert isinstance(result["average_latency"], int)
    assert result["total_requests"] == result["successful_requests"] + result["failed_requests"]


@pytest.mark.asyncio
async def test_run_load_test_ignores_monitoring_flag(fake_system: FakeSystem) -> None:
    await run_load_test(
        {"url": "http://target.test/", "duration": 1, "enableMonitoring": True},
        controller=_controller(fake_system),
    )
    assert fake_system.calls == 0


@pytest.mark.asyncio
async def test_monitoring_command_emits_named_events(fake_system: FakeSystem) -> None:
    events: list[tuple[str, dict[str, Any]]] = []
    result = await run_load_test_with_monitoring(
        {"url": "http://target.test/", "concurrency": 2, "duration": 1, "enableMonitoring": True},
        emit=lambda name, payload: events.append((name, payload)),
        controller=_controller(fake_system),
    )
    assert events
    assert {name for name, _ in events} == {LOAD_TEST_METRICS}
    payload = events[-1][1]
    assert {"rps", "total_requests", "successful_requests", "failed_requests"} <= set(payload)
    assert set(payload["system_metrics"]) >= {"cpu_usage", "memory_usage"}
    assert payload["total_requests"] <= result["total_requests"]


@pytest.mark.asyncio
async def test_monitoring_command_feeds_event_emitter(fake_system: FakeSystem) -> None:
    emitter = EventEmitter()
    seen: list[dict[str, Any]] = []
    emitter.on(LOAD_TEST_METRICS, seen.append)
    await run_load_test_with_monitoring(
        {"url": "http://target.test/", "duration": 1},
        emit=emitter.emit,
        controller=_controller(fake_system),
    )
    assert len(seen) >= 3


@pytest.mark.asyncio
async def test_config_errors_surface_to_caller() -> None:
    with pytest.raises(ConfigError) as excinfo:
        await run_load_test({"url": "http://target.test/", "concurrency": 0})
    assert excinfo.value.to_dict() == {
        "kind": "config_error",
        "field": "concurrency",
        "message": excinfo.value.message,
    }
