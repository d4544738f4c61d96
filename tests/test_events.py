from __future__ import annotations

from loadmon.events import LOAD_TEST_METRICS, EventEmitter


def test_emit_reaches_every_subscriber() -> None:
    emitter = EventEmitter()
    first: list[int] = []
    second: list[int] = []
    emitter.on(LOAD_TEST_METRICS, first.append)
    emitter.on(LOAD_TEST_METRICS, second.append)
    assert emitter.emit(LOAD_TEST_METRICS, 1) == 2
    assert first == second == [1]


def test_unsubscribe_and_unknown_events() -> None:
    emitter = EventEmitter()
    seen: list[int] = []
    unsubscribe = emitter.on("other", seen.append)
    assert emitter.emit(LOAD_TEST_METRICS, 1) == 0
    unsubscribe()
    assert emitter.emit("other", 2) == 0
    assert seen == []


def test_failing_handler_is_isolated() -> None:
    emitter = EventEmitter()
    seen: list[int] = []

    def broken(payload: int) -> None:
        raise RuntimeError("render failed")

    emitter.on(LOAD_TEST_METRICS, broken)
    emitter.on(LOAD_TEST_METRICS, seen.append)
    assert emitter.emit(LOAD_TEST_METRICS, 7) == 1
    assert seen == [7]
