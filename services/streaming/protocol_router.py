# services/streaming/protocol_router.py
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from core.enums import OutboundMessageType
from core.exceptions import ProtocolError, TransportError
from core.models import (
    TrackingConfig,
    TrackingResults,
    ModelDetectionResult,
    ZoneDefinition,
    InboundMessage,
    TrackingResultsMessage,
    DetectionsMessage,
    TrackingConfiguredMessage,
    TrackingStartedMessage,
    TrackingStoppedMessage,
    TrackerStatsMessage,
    ZoneDefinedMessage,
    ErrorMessage,
    UnknownMessage,
    parse_message,
)
from services.streaming.connection_manager import ConnectionManager
from shared.events import EventEmitter

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


# =============================================================================
# Outbound message builders
# =============================================================================
def build_configure_tracking(config: TrackingConfig) -> Dict[str, Any]:
    return {'type': OutboundMessageType.CONFIGURE_TRACKING.value, 'config': config.to_payload()}


def build_start_tracking(stream_id: str) -> Dict[str, Any]:
    return {'type': OutboundMessageType.START_TRACKING.value, 'stream_id': stream_id}


def build_stop_tracking(stream_id: str) -> Dict[str, Any]:
    return {'type': OutboundMessageType.STOP_TRACKING.value, 'stream_id': stream_id}


def build_get_tracker_stats(stream_id: str) -> Dict[str, Any]:
    return {'type': OutboundMessageType.GET_TRACKER_STATS.value, 'stream_id': stream_id}


def build_define_zone(
    zone_id: str,
    polygon_points: Sequence[Sequence[float]],
    zone_type: str = 'detection'
) -> Dict[str, Any]:
    return {
        'type': OutboundMessageType.DEFINE_ZONE.value,
        'zone_id': zone_id,
        'polygon_points': [[float(x), float(y)] for x, y in polygon_points],
        'zone_type': zone_type
    }


# =============================================================================
# Router
# =============================================================================
class ProtocolRouter:
    """
    Dispatches inbound server messages and sends tracking control messages.

    Tracking state is driven only by server acknowledgements:
    `tracking_requested` follows what the client asked for,
    `tracking_enabled` flips on 'tracking_started' / 'tracking_stopped'.

    Events (via `events`):
        message(InboundMessage)                       every decoded message
        tracking_results(TrackingResults, message)
        detections(dict[str, ModelDetectionResult], message)
        tracking_configured(TrackingConfig)
        tracking_state(bool)
        tracker_stats(dict)
        zone_defined(str)
        error(Exception)                              protocol errors, non-fatal
    """

    def __init__(self, connection: ConnectionManager, config: Optional[TrackingConfig] = None):
        self.connection = connection
        self.events = EventEmitter("protocol")

        self.config = config or TrackingConfig()
        self.acknowledged_config: Optional[TrackingConfig] = None
        self._pending_config: Optional[TrackingConfig] = None

        self.tracking_requested = False
        self.tracking_enabled = False

        self.server_stats: Dict[str, Any] = {}
        self.zones: Dict[str, ZoneDefinition] = {}
        self.last_error: Optional[str] = None
        self.unknown_messages = 0

        self._handlers: Dict[type, Callable[[Any], None]] = {
            TrackingResultsMessage: self._on_tracking_results,
            DetectionsMessage: self._on_detections,
            TrackingConfiguredMessage: self._on_tracking_configured,
            TrackingStartedMessage: self._on_tracking_started,
            TrackingStoppedMessage: self._on_tracking_stopped,
            TrackerStatsMessage: self._on_tracker_stats,
            ZoneDefinedMessage: self._on_zone_defined,
            ErrorMessage: self._on_error,
            UnknownMessage: self._on_unknown,
        }

        self._unsubscribe = connection.events.on("message", self.handle_raw)

    @property
    def stream_id(self) -> str:
        return self.connection.stream_id

    def close(self) -> None:
        """Stop listening to the connection"""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def handle_raw(self, raw: Union[str, bytes]) -> Optional[InboundMessage]:
        """Decode and dispatch one frame received from the socket"""
        try:
            message = parse_message(raw)
        except ProtocolError as e:
            logger.error(f"❌ Error parsing WebSocket message: {e}")
            self.last_error = str(e)
            self.events.emit("error", e)
            return None

        self.dispatch(message)
        return message

    def dispatch(self, message: InboundMessage) -> None:
        handler = self._handlers[type(message)]
        handler(message)
        self.events.emit("message", message)

    def _on_tracking_results(self, message: TrackingResultsMessage) -> None:
        results: TrackingResults = message.results
        logger.debug(f"📦 Tracking results - {len(results.tracked_objects)} objects")
        self.events.emit("tracking_results", results, message)

    def _on_detections(self, message: DetectionsMessage) -> None:
        results: Dict[str, ModelDetectionResult] = message.results
        for model_name, result in results.items():
            if result.has_error:
                logger.warning(f"⚠️ Model {model_name} reported error: {result.error}")
        self.events.emit("detections", results, message)

    def _on_tracking_configured(self, message: TrackingConfiguredMessage) -> None:
        confirmed = self._pending_config or self.config
        if message.config:
            try:
                confirmed = TrackingConfig.model_validate(message.config)
            except ValueError as e:
                logger.warning(f"⚠️ Server echoed an unreadable config, keeping requested one: {e}")
        self.acknowledged_config = confirmed
        self._pending_config = None
        logger.info(f"✅ Tracking configured - {confirmed.tracker_type.value}")
        self.events.emit("tracking_configured", confirmed)

    def _on_tracking_started(self, message: TrackingStartedMessage) -> None:
        self._set_tracking_enabled(True)

    def _on_tracking_stopped(self, message: TrackingStoppedMessage) -> None:
        self._set_tracking_enabled(False)

    def _set_tracking_enabled(self, enabled: bool) -> None:
        changed = enabled != self.tracking_enabled
        self.tracking_enabled = enabled
        logger.info("▶️ Tracking started" if enabled else "⏹️ Tracking stopped")
        if changed:
            self.events.emit("tracking_state", enabled)

    def _on_tracker_stats(self, message: TrackerStatsMessage) -> None:
        self.server_stats = {**self.server_stats, **message.stats}
        self.events.emit("tracker_stats", dict(self.server_stats))

    def _on_zone_defined(self, message: ZoneDefinedMessage) -> None:
        zone = self.zones.get(message.zone_id)
        if zone is not None:
            self.zones[message.zone_id] = replace(zone, confirmed=True)
        logger.info(f"📐 Zone defined: {message.zone_id}")
        self.events.emit("zone_defined", message.zone_id)

    def _on_error(self, message: ErrorMessage) -> None:
        logger.error(f"❌ Server error: {message.message}")
        self.last_error = message.message
        self.events.emit("error", ProtocolError(message.message))

    def _on_unknown(self, message: UnknownMessage) -> None:
        self.unknown_messages += 1
        logger.info(f"❓ Unknown message type: {message.message_type}")

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def _send(self, message: Dict[str, Any]) -> bool:
        try:
            await self.connection.send(message)
            return True
        except TransportError as e:
            logger.error(f"❌ Cannot send '{message['type']}': {e}")
            self.events.emit("error", e)
            return False

    async def configure_tracking(self, config: Optional[TrackingConfig] = None, **overrides) -> bool:
        """Send configure_tracking; overrides are merged into the current config"""
        new_config = config or self.config
        if overrides:
            new_config = new_config.merged(**overrides)

        self.config = new_config
        sent = await self._send(build_configure_tracking(new_config))
        if sent:
            self._pending_config = new_config
        return sent

    async def start_tracking(self) -> bool:
        sent = await self._send(build_start_tracking(self.stream_id))
        if sent:
            self.tracking_requested = True
        return sent

    async def stop_tracking(self) -> bool:
        sent = await self._send(build_stop_tracking(self.stream_id))
        if sent:
            self.tracking_requested = False
        return sent

    async def get_tracker_stats(self) -> bool:
        return await self._send(build_get_tracker_stats(self.stream_id))

    async def define_zone(
        self,
        zone_id: str,
        polygon_points: Sequence[Sequence[float]],
        zone_type: str = 'detection'
    ) -> bool:
        if len(polygon_points) < 3:
            raise ValueError(f"Zone '{zone_id}' needs at least 3 points, got {len(polygon_points)}")

        message = build_define_zone(zone_id, polygon_points, zone_type)
        sent = await self._send(message)
        if sent:
            self.zones[zone_id] = ZoneDefinition(
                zone_id=zone_id,
                polygon_points=tuple((x, y) for x, y in message['polygon_points']),
                zone_type=zone_type
            )
        return sent

    def reset(self) -> None:
        """Clear per-session state (zones, server stats, errors)"""
        self.server_stats = {}
        self.zones = {}
        self.last_error = None
        self.unknown_messages = 0
