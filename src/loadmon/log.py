from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum

LOG_TYPE_ENV = "LOADMON_LOG_TYPE"


class LogProfile(str, Enum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"
    AUTO = "auto"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def resolve_profile(profile: LogProfile | str = LogProfile.AUTO) -> LogProfile:
    profile = LogProfile(profile)
    if profile is not LogProfile.AUTO:
        return profile
    raw = os.environ.get(LOG_TYPE_ENV, "").strip().lower()
    try:
        resolved = LogProfile(raw)
    except ValueError:
        return LogProfile.DEV
    return LogProfile.DEV if resolved is LogProfile.AUTO else resolved


def configure_logging(profile: LogProfile | str = LogProfile.AUTO) -> LogProfile:
    """Install a handler on the ``loadmon`` logger for the given profile.

    ``dev`` logs DEBUG in a readable format, ``prod`` logs WARNING as JSON
    lines, ``test`` logs WARNING and leaves an existing setup untouched.
    ``auto`` reads ``LOADMON_LOG_TYPE`` and falls back to ``dev``.
    """
    resolved = resolve_profile(profile)
    root = logging.getLogger("loadmon")
    if resolved is LogProfile.TEST and root.handlers:
        return resolved
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    if resolved is LogProfile.PROD:
        handler.setFormatter(JsonFormatter())
        root.setLevel(logging.WARNING)
    elif resolved is LogProfile.TEST:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.setLevel(logging.WARNING)
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
        root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    root.propagate = False
    return resolved
