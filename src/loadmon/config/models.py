from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import httpx

from loadmon.errors import ConfigError

DEFAULT_CONCURRENCY = 1
DEFAULT_DURATION_SEC = 10


class RpsMode(str, Enum):
    TRAILING = "trailing"
    INSTANTANEOUS = "instantaneous"
    CUMULATIVE = "cumulative"


@dataclass(frozen=True, slots=True)
class TestConfig:
    url: str
    concurrency: int = DEFAULT_CONCURRENCY
    duration: int = DEFAULT_DURATION_SEC
    enable_monitoring: bool = False

    # keep pytest from collecting this as a test class
    __test__ = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TestConfig:
        """Build a config from the wire payload used by the command surface.

        Accepts ``enableMonitoring`` as well as ``enable_monitoring``. Missing
        optional fields take their defaults; the result is validated.
        """
        if "url" not in raw or raw["url"] is None:
            raise ConfigError("url is required", field="url")
        enable = raw.get("enableMonitoring", raw.get("enable_monitoring", False))
        config = cls(
            url=raw["url"],
            concurrency=_coalesce(raw.get("concurrency"), DEFAULT_CONCURRENCY),
            duration=_coalesce(raw.get("duration"), DEFAULT_DURATION_SEC),
            enable_monitoring=bool(enable),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise ConfigError("url must be a non-empty string", field="url")
        try:
            parsed = httpx.URL(self.url.strip())
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise ConfigError(f"url could not be parsed: {exc}", field="url") from exc
        if parsed.scheme not in ("http", "https"):
            raise ConfigError(f"url must be absolute http(s), got {self.url!r}", field="url")
        if not parsed.host:
            raise ConfigError(f"url has no host: {self.url!r}", field="url")
        if not _is_int(self.concurrency) or self.concurrency < 1:
            raise ConfigError(
                f"concurrency must be an integer >= 1, got {self.concurrency!r}",
                field="concurrency",
            )
        if not _is_int(self.duration) or self.duration < 1:
            raise ConfigError(
                f"duration must be an integer number of seconds >= 1, got {self.duration!r}",
                field="duration",
            )

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "url": self.url,
            "concurrency": self.concurrency,
            "duration": self.duration,
            "enableMonitoring": self.enable_monitoring,
        }


@dataclass(frozen=True, slots=True)
class ClientConfig:
    method: str = "GET"
    timeout_sec: float = 5.0
    connect_timeout_sec: float = 10.0
    keepalive_expiry_sec: float = 30.0
    headers: Mapping[str, str] = field(default_factory=dict)
    # when set, no request may outlive the run deadline
    cap_timeout_to_deadline: bool = False

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "method": self.method,
            "timeout_sec": self.timeout_sec,
            "connect_timeout_sec": self.connect_timeout_sec,
            "keepalive_expiry_sec": self.keepalive_expiry_sec,
            "headers": dict(self.headers),
            "cap_timeout_to_deadline": self.cap_timeout_to_deadline,
        }


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    sample_period_sec: float = 0.5
    rps_mode: RpsMode = RpsMode.TRAILING
    rps_window_sec: float = 1.0

    def __post_init__(self) -> None:
        if self.sample_period_sec <= 0:
            raise ConfigError("sample_period_sec must be > 0", field="sample_period_sec")
        if self.rps_window_sec <= 0:
            raise ConfigError("rps_window_sec must be > 0", field="rps_window_sec")

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "sample_period_sec": self.sample_period_sec,
            "rps_mode": self.rps_mode.value,
            "rps_window_sec": self.rps_window_sec,
        }


def _coalesce(value: Any, default: Any) -> Any:
    return default if value is None else value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
