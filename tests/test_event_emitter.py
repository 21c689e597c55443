# tests/test_event_emitter.py
import pytest

from shared.events import EventEmitter


def test_multiple_subscribers_receive_event():
    emitter = EventEmitter("test")
    first, second = [], []
    emitter.on("state", first.append)
    emitter.on("state", second.append)

    assert emitter.emit("state", "connected") == 2
    assert first == second == ["connected"]


def test_unsubscribe():
    emitter = EventEmitter()
    received = []
    unsubscribe = emitter.on("x", received.append)
    unsubscribe()

    assert emitter.emit("x", 1) == 0
    assert received == []
    assert not emitter.off("x", received.append)


def test_failing_handler_does_not_block_others():
    emitter = EventEmitter()
    received = []

    def broken(value):
        raise RuntimeError("boom")

    emitter.on("x", broken)
    emitter.on("x", received.append)
    emitter.emit("x", 42)

    assert received == [42]


@pytest.mark.asyncio
async def test_async_handlers_are_scheduled():
    emitter = EventEmitter()
    received = []

    async def handler(value):
        received.append(value)

    emitter.on("x", handler)
    emitter.emit("x", "a")
    await emitter.drain()

    assert received == ["a"]
    assert emitter.listener_count("x") == 1


def test_async_handler_without_loop_is_dropped():
    emitter = EventEmitter()

    async def handler(value):
        raise AssertionError("must not run")

    emitter.on("x", handler)
    assert emitter.emit("x", 1) == 1
