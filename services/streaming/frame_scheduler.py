# services/streaming/frame_scheduler.py
import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set, Union

from core.exceptions import FrameEncodingError, TransportError
from core.models import ModelRequest, as_model_requests
from services.streaming.connection_manager import ConnectionManager
from services.streaming.frame_encoder import encode_frame
from shared.events import EventEmitter

logger = logging.getLogger(__name__)

FrameSource = Callable[[], Union[Optional[bytes], Awaitable[Optional[bytes]]]]
ModelLoader = Callable[[str], Awaitable[Any]]

# Skip reasons reported with the 'frame_skipped' event
SKIP_RATE_LIMITED = "rate_limited"
SKIP_NOT_CONNECTED = "not_connected"
SKIP_NO_MODELS = "no_models"
SKIP_NO_FRAME = "no_frame"


class FrameCaptureScheduler:
    """
    Pulls frames from a source at a fixed rate and sends them as binary messages.

    A tick is skipped (never queued) when less than 1/fps seconds passed since
    the last send, the connection is not open, no model is selected or the
    source has no frame.

    Events (via `events`):
        frame_sent(size_bytes, models)
        frame_skipped(reason)
        frame_failed(Exception)
        model_loaded(name)
        model_load_failed(name, Exception)
    """

    def __init__(
        self,
        connection: ConnectionManager,
        frame_source: FrameSource,
        fps: float = 15.0,
        models: Iterable[Union[ModelRequest, str]] = (),
        model_loader: Optional[ModelLoader] = None,
        model_load_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.connection = connection
        self.frame_source = frame_source
        self.model_loader = model_loader
        self.model_load_timeout = model_load_timeout
        self.events = EventEmitter("scheduler")

        self._clock = clock
        self._sleep = sleep
        self._fps = 0.0
        self.interval = 0.0
        self.set_fps(fps)

        self._models: List[ModelRequest] = as_model_requests(models)
        self.loaded_models: Set[str] = set()
        self.failed_models: Set[str] = set()

        self._task: Optional[asyncio.Task] = None
        self._last_sent_at: Optional[float] = None

        # Stats
        self.frames_sent = 0
        self.frames_skipped = 0
        self.frames_failed = 0
        self.last_frame_time: Optional[float] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def fps(self) -> float:
        return self._fps

    def set_fps(self, fps: float) -> None:
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self._fps = float(fps)
        self.interval = 1.0 / self._fps
        logger.debug(f"🎞️ Capture rate set to {self._fps:g} fps (interval {self.interval:.3f}s)")

    @property
    def models(self) -> List[ModelRequest]:
        return list(self._models)

    def set_models(self, models: Iterable[Union[ModelRequest, str]]) -> None:
        """Replace the model selection; failed models get another chance"""
        self._models = as_model_requests(models)
        self.failed_models.clear()
        logger.info(f"🧠 Selected models: {[m.name for m in self._models]}")

    def reset_model_state(self) -> None:
        self.loaded_models.clear()
        self.failed_models.clear()

    def mark_loaded(self, names: Iterable[str]) -> None:
        """Models the server already reports as loaded (GET /models)"""
        self.loaded_models.update(names)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    def _skip(self, reason: str) -> bool:
        self.frames_skipped += 1
        self.events.emit("frame_skipped", reason)
        return False

    async def _ensure_loaded(self, model: ModelRequest) -> bool:
        if model.name in self.loaded_models:
            return True
        if model.name in self.failed_models:
            return False
        if self.model_loader is None:
            self.loaded_models.add(model.name)
            return True

        try:
            result = await asyncio.wait_for(self.model_loader(model.name), timeout=self.model_load_timeout)
        except asyncio.TimeoutError:
            error: Optional[Exception] = TimeoutError(
                f"Loading '{model.name}' took longer than {self.model_load_timeout}s"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
        else:
            error = None if result is not False else RuntimeError(f"Server refused to load '{model.name}'")

        if error is not None:
            logger.error(f"❌ Failed to load model {model.name}: {error}")
            self.failed_models.add(model.name)
            self.events.emit("model_load_failed", model.name, error)
            return False

        logger.info(f"✅ Model loaded: {model.name}")
        self.loaded_models.add(model.name)
        self.events.emit("model_loaded", model.name)
        return True

    async def _read_frame(self) -> Optional[bytes]:
        frame = self.frame_source()
        if inspect.isawaitable(frame):
            frame = await frame
        return frame

    async def tick(self, now: Optional[float] = None) -> bool:
        """
        Capture and send at most one frame.

        Returns True when a frame was sent.
        """
        now = self._clock() if now is None else now

        if self._last_sent_at is not None and now - self._last_sent_at < self.interval:
            return self._skip(SKIP_RATE_LIMITED)
        if not self.connection.is_connected:
            return self._skip(SKIP_NOT_CONNECTED)
        if not self._models:
            return self._skip(SKIP_NO_MODELS)

        active = [m for m in self._models if await self._ensure_loaded(m)]
        if not active:
            return self._skip(SKIP_NO_MODELS)

        image = await self._read_frame()
        if not image:
            return self._skip(SKIP_NO_FRAME)

        try:
            payload = encode_frame(image, active)
            await self.connection.send(payload)
        except (FrameEncodingError, TransportError) as e:
            self.frames_failed += 1
            logger.error(f"❌ Error capturing frame: {e}")
            self.events.emit("frame_failed", e)
            return False

        self._last_sent_at = now
        self.frames_sent += 1
        self.last_frame_time = time.time()
        self.events.emit("frame_sent", len(payload), [m.name for m in active])
        return True

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        logger.info(f"🎬 Frame capture started at {self._fps:g} fps")
        try:
            while True:
                try:
                    await self.tick()
                except Exception as e:
                    self.frames_failed += 1
                    logger.error(f"❌ Capture tick failed: {e}", exc_info=True)
                    self.events.emit("frame_failed", e)
                await self._sleep(self.interval)
        finally:
            logger.info("🛑 Frame capture stopped")

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def reset_stats(self) -> None:
        self.frames_sent = 0
        self.frames_skipped = 0
        self.frames_failed = 0
        self.last_frame_time = None
        self._last_sent_at = None
