from __future__ import annotations

from typing import Any


class LoadTestError(Exception):
    """Base class for errors that abort a load-test call."""


class ConfigError(LoadTestError):
    """Raised when a test configuration is rejected before the run starts."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "config_error", "field": self.field, "message": self.message}


class RunControlError(LoadTestError):
    """Raised when a lifecycle operation is not valid in the current state."""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "run_control_error", "message": str(self)}


class AggregatorClosedError(RunControlError):
    pass
