"""Command surface consumed by the presentation layer.

Both commands take the wire-format config mapping (``url``, ``concurrency``,
``duration``, ``enableMonitoring``) and return the ``TestResult`` as a plain
dict. ``ConfigError`` and ``RunControlError`` propagate to the caller; request
failures never do.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from loadmon.config import TestConfig
from loadmon.events import LOAD_TEST_METRICS
from loadmon.loadgen.runner import RunController
from loadmon.metrics import LiveMetricsSnapshot

Emitter = Callable[[str, Any], Any]


async def run_load_test(
    config: Mapping[str, Any],
    controller: RunController | None = None,
) -> dict[str, Any]:
    test_config = TestConfig.from_mapping({**config, "enableMonitoring": False})
    controller = controller or RunController()
    result = await controller.run(test_config)
    return result.to_dict()


async def run_load_test_with_monitoring(
    config: Mapping[str, Any],
    emit: Emitter,
    controller: RunController | None = None,
) -> dict[str, Any]:
    """Run a test and emit ``load_test_metrics`` events while it is in progress.

    Monitoring is on unless the payload explicitly sets ``enableMonitoring``
    to false, in which case no events are emitted.
    """
    payload = dict(config)
    payload.setdefault("enableMonitoring", True)
    test_config = TestConfig.from_mapping(payload)
    controller = controller or RunController()

    def forward(snapshot: LiveMetricsSnapshot) -> None:
        emit(LOAD_TEST_METRICS, snapshot.to_dict())

    result = await controller.run(test_config, sink=forward)
    return result.to_dict()
