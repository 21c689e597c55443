# services/streaming/connection_manager.py
import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from core.enums import ConnectionState, NORMAL_CLOSURE, ABNORMAL_CLOSURE
from core.exceptions import TransportError, NotConnectedError, ConnectionLostError
from shared.events import EventEmitter

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


def _default_connector(url: str) -> Awaitable[Any]:
    return websockets.connect(url, max_size=None)


class ConnectionManager:
    """
    Owns the WebSocket session to the inference server.

    Events (via `events`):
        state_changed(ConnectionState)
        message(str | bytes)            every inbound frame
        error(Exception)                transport errors, ConnectionLostError when retries run out
        reconnect_scheduled(attempt, delay)
    """

    def __init__(
        self,
        url: str,
        reconnect_base_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        connect_timeout: float = 10.0,
        connector: Optional[Connector] = None,
        stream_id: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.url = url
        self.reconnect_base_delay = reconnect_base_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.connect_timeout = connect_timeout
        self.events = EventEmitter("connection")

        # Stable for the lifetime of this manager so a reconnect resumes the same logical stream
        self.stream_id = stream_id or f"stream_{int(time.time() * 1000)}"

        self._connector = connector or _default_connector
        self._sleep = sleep

        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        self.reconnect_attempt = 0
        self._retries_exhausted = False
        self._closing = False

        self._opening: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        # Stats
        self.messages_sent = 0
        self.messages_received = 0
        self.last_close_code: Optional[int] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    @property
    def retries_exhausted(self) -> bool:
        return self._retries_exhausted

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.info(f"🔌 Connection {previous.value} -> {state.value} ({self.url})")
        self.events.emit("state_changed", state)

    # ------------------------------------------------------------------
    # Connect / disconnect
    # ------------------------------------------------------------------
    async def connect(self) -> ConnectionState:
        """
        Open the session. Resolves CONNECTED once open, DISCONNECTED if the
        attempt failed (a reconnect may then be scheduled).
        """
        if self.is_connected:
            return ConnectionState.CONNECTED

        self._closing = False
        if self._retries_exhausted:
            logger.info("🔁 Manual connect after exhausted retries, re-arming reconnect policy")
            self._retries_exhausted = False
            self.reconnect_attempt = 0

        self._cancel_reconnect()
        return await self._open()

    async def _open(self) -> ConnectionState:
        if self._opening is not None and not self._opening.done():
            return await asyncio.shield(self._opening)

        self._opening = asyncio.get_running_loop().create_task(self._do_open())
        return await asyncio.shield(self._opening)

    async def _do_open(self) -> ConnectionState:
        self._set_state(ConnectionState.CONNECTING)

        try:
            ws = await asyncio.wait_for(self._connector(self.url), timeout=self.connect_timeout)
        except asyncio.CancelledError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.error(f"❌ WebSocket connect failed ({self.url}): {e}")
            self._set_state(ConnectionState.DISCONNECTED)
            self.events.emit("error", TransportError(f"Connection failed: {e}"))
            self._handle_abnormal_close(ABNORMAL_CLOSURE)
            return ConnectionState.DISCONNECTED

        if self._closing:
            # disconnect() was called while the handshake was in flight
            await ws.close(code=NORMAL_CLOSURE, reason="Client disconnect")
            self._set_state(ConnectionState.DISCONNECTED)
            return ConnectionState.DISCONNECTED

        self._ws = ws
        self.reconnect_attempt = 0
        self._retries_exhausted = False
        self._receive_task = asyncio.get_running_loop().create_task(self._receive_loop(ws))
        logger.info(f"✅ WebSocket connected - stream {self.stream_id}")
        self._set_state(ConnectionState.CONNECTED)
        return ConnectionState.CONNECTED

    async def disconnect(self) -> None:
        """Graceful close with code 1000; no reconnect follows."""
        self._closing = True
        self._cancel_reconnect()

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close(code=NORMAL_CLOSURE, reason="Client disconnect")
            except (OSError, WebSocketException) as e:
                logger.warning(f"⚠️ Error while closing WebSocket: {e}")

        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("🛑 WebSocket disconnected by client")

    # ------------------------------------------------------------------
    # Receive / close handling
    # ------------------------------------------------------------------
    async def _receive_loop(self, ws) -> None:
        try:
            async for message in ws:
                self.messages_received += 1
                self.events.emit("message", message)
        except ConnectionClosed:
            pass
        except asyncio.CancelledError:
            raise
        except (OSError, WebSocketException) as e:
            logger.error(f"❌ WebSocket receive error: {e}")
            self.events.emit("error", TransportError(f"WebSocket connection error: {e}"))

        code = getattr(ws, "close_code", None)
        self._on_closed(ws, code if code is not None else ABNORMAL_CLOSURE)

    def _on_closed(self, ws, code: int) -> None:
        if ws is not self._ws:
            return  # stale socket, already replaced or closed by disconnect()

        self._ws = None
        self._receive_task = None
        self.last_close_code = code
        logger.info(f"🔌 WebSocket closed with code {code}")
        self._set_state(ConnectionState.DISCONNECTED)

        if self._closing or code == NORMAL_CLOSURE:
            return
        self._handle_abnormal_close(code)

    def _handle_abnormal_close(self, code: int) -> None:
        if self._closing:
            return

        attempt = self.reconnect_attempt + 1
        if attempt >= self.max_reconnect_attempts:
            self.reconnect_attempt = attempt
            self._retries_exhausted = True
            logger.error(f"❌ Max reconnection attempts reached ({self.max_reconnect_attempts})")
            self.events.emit("error", ConnectionLostError(
                "Connection lost. Reconnect attempts exhausted.", attempts=attempt
            ))
            return

        self.reconnect_attempt = attempt
        delay = self.reconnect_base_delay * attempt
        logger.warning(f"🔄 Reconnecting in {delay:.1f}s "
                       f"(attempt {attempt}/{self.max_reconnect_attempts}, close code {code})")
        self.events.emit("reconnect_scheduled", attempt, delay)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if self._closing or self.is_connected:
            return
        await self._open()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------
    async def send(self, data: Union[bytes, bytearray, memoryview, Dict[str, Any]]) -> None:
        """
        Send a binary frame or a JSON control message.

        Raises:
            NotConnectedError: session is not open.
            TransportError: the socket failed during send.
        """
        if not self.is_connected:
            logger.error("❌ WebSocket not connected, message dropped")
            raise NotConnectedError("WebSocket not connected")

        if isinstance(data, dict):
            payload: Union[str, bytes] = json.dumps(data, separators=(",", ":"))
        else:
            payload = bytes(data)

        try:
            await self._ws.send(payload)
        except (ConnectionClosed, OSError) as e:
            logger.error(f"❌ Error sending message: {e}")
            raise TransportError(f"Failed to send message: {e}") from e

        self.messages_sent += 1

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------
    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
