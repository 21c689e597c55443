"""
Shared fixtures for the tracking client test suite.

The WebSocket is replaced by FakeWebSocket through the ConnectionManager's
`connector` parameter, so no test touches the network.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Union

import pytest
from unittest.mock import AsyncMock, MagicMock

from shared.events import EventEmitter

_CLOSED = object()


class FakeWebSocket:
    """Minimal stand-in for a websockets client connection"""

    def __init__(self):
        self.sent: List[Union[str, bytes]] = []
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data):
        if self.closed:
            raise OSError("socket is closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        if self.closed:
            return
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    def feed(self, message: Union[str, bytes, Dict[str, Any]]):
        """Queue a server message"""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._incoming.put_nowait(message)

    def drop(self, code: int = 1006):
        """Simulate the server side going away"""
        self.closed = True
        self.close_code = code
        self._incoming.put_nowait(_CLOSED)

    @property
    def sent_json(self) -> List[Dict[str, Any]]:
        return [json.loads(m) for m in self.sent if isinstance(m, str)]

    @property
    def sent_binary(self) -> List[bytes]:
        return [m for m in self.sent if isinstance(m, bytes)]

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """
    Callable passed as ConnectionManager(connector=...).

    `outcomes` is consumed in order: an Exception instance is raised, a
    FakeWebSocket is returned. When empty a fresh FakeWebSocket is returned.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None):
        self.outcomes = list(outcomes or [])
        self.calls: List[str] = []
        self.sockets: List[FakeWebSocket] = []

    async def __call__(self, url: str):
        self.calls.append(url)
        outcome = self.outcomes.pop(0) if self.outcomes else FakeWebSocket()
        if isinstance(outcome, BaseException):
            raise outcome
        self.sockets.append(outcome)
        return outcome

    @property
    def last_socket(self) -> FakeWebSocket:
        return self.sockets[-1]


class ManualSleep:
    """Sleep replacement that records delays and blocks until released"""

    def __init__(self):
        self.delays: List[float] = []
        self._waiters: List[asyncio.Future] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    def release(self):
        """Wake the sleeps that are currently waiting"""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)


async def settle(rounds: int = 20):
    """Let scheduled tasks and callbacks run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def instant_sleep(delay: float):
    await asyncio.sleep(0)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def mock_connection():
    """Connection stub for router / scheduler unit tests"""
    connection = MagicMock()
    connection.events = EventEmitter("connection")
    connection.send = AsyncMock()
    connection.stream_id = "s1"
    connection.is_connected = True
    return connection


def tracked_object(track_id: str, bbox=(10, 10, 50, 50), class_name: str = "person", **extra) -> Dict[str, Any]:
    x1, y1, x2, y2 = bbox
    data = {
        "track_id": track_id,
        "class_name": class_name,
        "class_id": 0,
        "bbox": list(bbox),
        "centroid": [(x1 + x2) / 2, (y1 + y2) / 2],
        "confidence": 0.9,
        "age": 3,
        "hits": 3,
        "time_since_update": 0,
        "velocity": [1.5, -0.5],
        "trajectory_length": 3,
    }
    data.update(extra)
    return data


def tracking_results_message(*objects: Dict[str, Any], timestamp: Optional[float] = None,
                             zone_occupancy: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
    class_counts: Dict[str, int] = {}
    for obj in objects:
        class_counts[obj["class_name"]] = class_counts.get(obj["class_name"], 0) + 1
    message = {
        "type": "tracking_results",
        "results": {
            "tracked_objects": {obj["track_id"]: obj for obj in objects},
            "zone_occupancy": zone_occupancy or {},
            "summary": {
                "total_tracks": len(objects),
                "active_tracks": len(objects),
                "class_counts": class_counts,
            },
        },
    }
    if timestamp is not None:
        message["timestamp"] = timestamp
    return message
