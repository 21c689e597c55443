# services/client/tracking_session.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from core.enums import ConnectionState
from core.exceptions import ConnectionLostError
from core.models import ModelDetectionResult, ModelRequest, TrackingConfig, TrackingResults
from infrastructure.capture.video_source import VideoSource
from infrastructure.external.model_api_client import ModelApiClient
from infrastructure.monitoring.metrics import ClientMetrics
from services.overlay import CoordinateTransform, DrawInstruction, OverlayConfig, OverlayRenderer
from services.statistics import StatisticsAggregator
from services.streaming.connection_manager import ConnectionManager, Connector
from services.streaming.frame_scheduler import FrameCaptureScheduler, FrameSource
from services.streaming.protocol_router import ProtocolRouter
from shared.config.logging_config import get_logger
from shared.events import EventEmitter

logger = logging.getLogger(__name__)
session_log = get_logger("smartcamera.session")

Size = Tuple[int, int]


class TrackingSession:
    """
    Wires connection, router, scheduler, overlay and statistics for one
    streaming session. Use as an async context manager or call start()/close().

    Events (via `events`):
        overlay(list[DrawInstruction])       new overlay after each result message
        tracking_state(bool)
        connection_state(ConnectionState)
        error(Exception)
    """

    def __init__(
        self,
        ws_url: str,
        models: Iterable[Union[ModelRequest, str]] = (),
        tracking_config: Optional[TrackingConfig] = None,
        video_source: Optional[VideoSource] = None,
        frame_source: Optional[FrameSource] = None,
        api_client: Optional[ModelApiClient] = None,
        overlay_config: Optional[OverlayConfig] = None,
        source_size: Optional[Size] = None,
        display_size: Optional[Size] = None,
        camera_fps: float = 2.0,
        read_fps: float = 30.0,
        max_read_failures: int = 10,
        reconnect_base_delay: float = 3.0,
        max_reconnect_attempts: int = 5,
        connect_timeout: float = 10.0,
        model_load_timeout: float = 30.0,
        connector: Optional[Connector] = None,
        metrics: Optional[ClientMetrics] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        if frame_source is None and video_source is not None:
            frame_source = video_source.latest_jpeg
        if frame_source is None:
            raise ValueError("TrackingSession needs a video_source or a frame_source")

        self.video_source = video_source
        self.api_client = api_client
        self.camera_fps = camera_fps
        self.read_fps = read_fps
        self.max_read_failures = max_read_failures
        self.source_size = source_size
        self.display_size = display_size
        self._sleep = sleep
        self.events = EventEmitter("session")
        self.metrics = metrics or ClientMetrics()

        self.connection = ConnectionManager(
            ws_url,
            reconnect_base_delay=reconnect_base_delay,
            max_reconnect_attempts=max_reconnect_attempts,
            connect_timeout=connect_timeout,
            connector=connector,
            sleep=sleep
        )
        self.router = ProtocolRouter(self.connection, tracking_config)
        self.scheduler = FrameCaptureScheduler(
            self.connection,
            frame_source,
            fps=camera_fps,
            models=models,
            model_loader=api_client.load_model if api_client else None,
            model_load_timeout=model_load_timeout,
            sleep=sleep
        )
        self.renderer = OverlayRenderer(overlay_config)
        self.statistics = StatisticsAggregator()

        # Latest snapshots, replaced on every message
        self.latest_tracking: Optional[TrackingResults] = None
        self.latest_detections: Dict[str, ModelDetectionResult] = {}
        self.last_error: Optional[Exception] = None
        self._reader_task: Optional[asyncio.Task] = None

        self._wire()

    @classmethod
    def from_settings(cls, settings, video_source: Optional[VideoSource] = None, **kwargs) -> 'TrackingSession':
        streaming = settings.streaming
        options = dict(
            api_client=ModelApiClient(settings.api_base_url, timeout=settings.api_timeout),
            overlay_config=OverlayConfig.from_settings(settings.overlay),
            tracking_config=TrackingConfig().merged(fps=streaming.tracking_fps),
            camera_fps=streaming.camera_fps,
            read_fps=streaming.read_fps,
            max_read_failures=streaming.max_read_failures,
            reconnect_base_delay=streaming.reconnect_base_delay,
            max_reconnect_attempts=streaming.max_reconnect_attempts,
            connect_timeout=streaming.connect_timeout,
            model_load_timeout=streaming.model_load_timeout
        )
        options.update(kwargs)
        return cls(settings.ws_url, video_source=video_source, **options)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def _wire(self) -> None:
        connection_events = self.connection.events
        connection_events.on("state_changed", self._on_connection_state)
        connection_events.on("error", self._on_error)
        connection_events.on("reconnect_scheduled", self.metrics.record_reconnect)

        router_events = self.router.events
        router_events.on("tracking_results", self.statistics.on_tracking_results)
        router_events.on("tracking_results", self._on_tracking_results)
        router_events.on("detections", self.statistics.on_detections)
        router_events.on("detections", self._on_detections)
        router_events.on("tracking_state", self._on_tracking_state)
        router_events.on("tracking_configured", self._on_tracking_configured)
        router_events.on("message", self.metrics.record_message)
        router_events.on("error", self._on_protocol_error)

        scheduler_events = self.scheduler.events
        scheduler_events.on("frame_sent", self.metrics.record_frame_sent)
        scheduler_events.on("frame_skipped", self.metrics.record_frame_skipped)
        scheduler_events.on("frame_failed", self.metrics.record_frame_failed)
        scheduler_events.on("model_loaded", lambda name: self.metrics.record_model_load(name, True))
        scheduler_events.on("model_load_failed",
                            lambda name, error: self.metrics.record_model_load(name, False, error))

    def _on_connection_state(self, state: ConnectionState) -> None:
        self.events.emit("connection_state", state)

    def _on_error(self, error: Exception) -> None:
        self.last_error = error
        if isinstance(error, ConnectionLostError):
            logger.error(f"❌ Connection lost after {error.attempts} attempts")
        self.events.emit("error", error)

    def _on_protocol_error(self, error: Exception) -> None:
        self.metrics.record_protocol_error(error)
        self._on_error(error)

    def _on_tracking_state(self, enabled: bool) -> None:
        self._apply_capture_rate()
        self.events.emit("tracking_state", enabled)

    def _on_tracking_configured(self, config: TrackingConfig) -> None:
        self._apply_capture_rate()

    def _apply_capture_rate(self) -> None:
        if self.router.tracking_enabled:
            config = self.router.acknowledged_config or self.router.config
            self.scheduler.set_fps(config.frame_rate)
        else:
            self.scheduler.set_fps(self.camera_fps)

    # ------------------------------------------------------------------
    # Results -> overlay
    # ------------------------------------------------------------------
    def transform(self) -> Optional[CoordinateTransform]:
        source_size = self.source_size
        if source_size is None and self.video_source is not None:
            source_size = self.video_source.frame_size
        if source_size is None:
            return None
        return CoordinateTransform(source_size, self.display_size or source_size)

    def _on_tracking_results(self, results: TrackingResults, message) -> None:
        self.latest_tracking = results
        transform = self.transform()
        if transform is None:
            logger.debug("🖼️ No frame size yet, overlay skipped")
            return
        instructions = self.renderer.render_tracking(results, transform, self.router.zones.values())
        self.events.emit("overlay", instructions)

    def _on_detections(self, results: Dict[str, ModelDetectionResult], message) -> None:
        self.latest_detections = results
        if self.router.tracking_enabled:
            return
        transform = self.transform()
        if transform is None:
            return
        instructions = self.renderer.render_detections(results, transform)
        self.events.emit("overlay", instructions)

    @property
    def overlay(self) -> List[DrawInstruction]:
        return self.renderer.instructions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> ConnectionState:
        """Open the source, connect and start capturing"""
        if self.video_source is not None and not self.video_source.is_opened:
            if not self.video_source.open():
                logger.warning("⚠️ Video source could not be opened, frames will be skipped")
        if self.video_source is not None and self.video_source.is_opened and self._reader_task is None:
            self._reader_task = asyncio.get_running_loop().create_task(self._read_frames())

        if self.api_client is not None:
            models = await self.api_client.list_models()
            self.scheduler.mark_loaded(m.name for m in models if m.loaded)

        state = await self.connection.connect()
        self.scheduler.start()
        logger.info(f"🚀 Tracking session started - stream {self.connection.stream_id}")
        session_log.info("session_started", stream_id=self.connection.stream_id, url=self.connection.url,
                         models=[m.name for m in self.scheduler.models])
        return state

    async def close(self) -> None:
        await self.scheduler.stop()
        await self._stop_reader()
        await self.connection.disconnect()
        if self.video_source is not None:
            self.video_source.close()
        self.router.close()
        logger.info("🛑 Tracking session closed")
        session_log.info("session_closed", stream_id=self.connection.stream_id,
                         frames_sent=self.scheduler.frames_sent,
                         messages_received=self.statistics.messages_received)

    async def _read_frames(self) -> None:
        """Keep video_source.latest_frame fresh independent of frame sends"""
        video = self.video_source
        interval = 1.0 / self.read_fps
        consecutive_failures = 0

        try:
            while True:
                frame = video.read_frame()
                if frame is None:
                    consecutive_failures += 1
                    logger.warning(f"⚠️ Frame read failed (failures: {consecutive_failures})")
                    if consecutive_failures >= self.max_read_failures:
                        logger.error("❌ Too many consecutive read failures, stopping frame reader")
                        break
                    await self._sleep(1)
                    continue

                consecutive_failures = 0
                await self._sleep(interval)
        except asyncio.CancelledError:
            logger.info("🛑 Frame reader stopped")
            raise

    async def _stop_reader(self) -> None:
        task, self._reader_task = self._reader_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ------------------------------------------------------------------
    # Tracking control
    # ------------------------------------------------------------------
    def set_models(self, models: Iterable[Union[ModelRequest, str]]) -> None:
        self.scheduler.set_models(models)

    async def start_tracking(self, config: Optional[TrackingConfig] = None, **overrides) -> bool:
        """Send the current config, then start_tracking"""
        if not await self.router.configure_tracking(config, **overrides):
            return False
        return await self.router.start_tracking()

    async def stop_tracking(self) -> bool:
        return await self.router.stop_tracking()

    async def define_zone(self, zone_id: str, polygon_points, zone_type: str = 'detection') -> bool:
        return await self.router.define_zone(zone_id, polygon_points, zone_type)

    async def request_tracker_stats(self) -> bool:
        return await self.router.get_tracker_stats()

    def clear_buffers(self) -> None:
        """Forget buffered results, overlay state and statistics"""
        self.latest_tracking = None
        self.latest_detections = {}
        self.renderer.reset()
        self.statistics.reset()
        self.router.reset()
        self.scheduler.reset_stats()

    async def reset(self, restart_delay: float = 1.0) -> bool:
        """Stop tracking, clear buffered state and start again"""
        was_tracking = self.router.tracking_requested
        if was_tracking:
            await self.stop_tracking()
        self.clear_buffers()
        if not was_tracking:
            return True
        await self._sleep(restart_delay)
        return await self.start_tracking()

    def export_state(self) -> Dict[str, Any]:
        """Snapshot of buffered session state as a JSON-serializable dict"""
        tracking = self.latest_tracking
        return {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'stream_id': self.connection.stream_id,
            'configuration': self.router.config.to_payload(),
            'acknowledged_configuration': (
                self.router.acknowledged_config.to_payload() if self.router.acknowledged_config else None
            ),
            'tracking_enabled': self.router.tracking_enabled,
            'statistics': {
                **self.statistics.snapshot(),
                'frames_sent': self.scheduler.frames_sent,
                'last_frame_time': self.scheduler.last_frame_time,
                'server_stats': dict(self.router.server_stats)
            },
            'tracked_objects': (
                {tid: obj.to_dict() for tid, obj in tracking.tracked_objects.items()} if tracking else {}
            ),
            'zone_occupancy': (
                {zid: list(ids) for zid, ids in tracking.zone_occupancy.items()} if tracking else {}
            ),
            'zones': [zone.to_dict() for zone in self.router.zones.values()],
            'detections': {name: result.to_dict() for name, result in self.latest_detections.items()},
            'track_colors': self.renderer.colors.as_dict()
        }
