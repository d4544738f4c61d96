from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

LOAD_TEST_METRICS = "load_test_metrics"

Handler = Callable[[Any], None]


class EventEmitter:
    """Named-event fan-out to any number of subscribers.

    A failing handler is logged and skipped; it never affects the emitter or
    the other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> int:
        delivered = 0
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("handler for %s raised", event)
                continue
            delivered += 1
        return delivered
