from __future__ import annotations

from loadmon.monitor.sampler import MonitorSampler, RateTracker, SnapshotSink, SystemSource
from loadmon.monitor.system import SystemSampler

__all__ = ["MonitorSampler", "RateTracker", "SnapshotSink", "SystemSampler", "SystemSource"]
