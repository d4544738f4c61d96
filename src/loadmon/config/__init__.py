from __future__ import annotations

from loadmon.config.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DURATION_SEC,
    ClientConfig,
    MonitorConfig,
    RpsMode,
    TestConfig,
)

__all__ = [
    "DEFAULT_CONCURRENCY",
    "DEFAULT_DURATION_SEC",
    "ClientConfig",
    "MonitorConfig",
    "RpsMode",
    "TestConfig",
]
