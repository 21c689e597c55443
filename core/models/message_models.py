# core/models/message_models.py
"""
Typed inbound protocol messages.

Every server message is decoded into exactly one of the dataclasses below;
tags that are not part of the protocol become UnknownMessage.
"""
import json
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union, ClassVar

from core.enums import InboundMessageType
from core.exceptions import ProtocolError
from .detection_models import Detection, ModelDetectionResult
from .tracking_models import TrackingResults


@dataclass(frozen=True)
class TrackingResultsMessage:
    type: ClassVar[str] = InboundMessageType.TRACKING_RESULTS.value
    results: TrackingResults
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class DetectionsMessage:
    type: ClassVar[str] = InboundMessageType.DETECTIONS.value
    results: Dict[str, ModelDetectionResult]
    timestamp: Optional[float] = None

    @property
    def all_detections(self) -> List[Detection]:
        """Detections of every model flattened into one list"""
        return [d for result in self.results.values() for d in result.detections]


@dataclass(frozen=True)
class TrackingConfiguredMessage:
    type: ClassVar[str] = InboundMessageType.TRACKING_CONFIGURED.value
    config: Optional[Dict[str, Any]] = None
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class TrackingStartedMessage:
    type: ClassVar[str] = InboundMessageType.TRACKING_STARTED.value
    stream_id: Optional[str] = None
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class TrackingStoppedMessage:
    type: ClassVar[str] = InboundMessageType.TRACKING_STOPPED.value
    stream_id: Optional[str] = None
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class TrackerStatsMessage:
    type: ClassVar[str] = InboundMessageType.TRACKER_STATS.value
    stats: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class ZoneDefinedMessage:
    type: ClassVar[str] = InboundMessageType.ZONE_DEFINED.value
    zone_id: str
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class ErrorMessage:
    type: ClassVar[str] = InboundMessageType.ERROR.value
    message: str
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class UnknownMessage:
    message_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[float] = None

    @property
    def type(self) -> str:
        return self.message_type


InboundMessage = Union[
    TrackingResultsMessage,
    DetectionsMessage,
    TrackingConfiguredMessage,
    TrackingStartedMessage,
    TrackingStoppedMessage,
    TrackerStatsMessage,
    ZoneDefinedMessage,
    ErrorMessage,
    UnknownMessage,
]


def _parse_timestamp(data: Dict[str, Any]) -> Optional[float]:
    ts = data.get('timestamp')
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return None
    return float(ts)


def parse_message(raw: Union[str, bytes, Dict[str, Any]]) -> InboundMessage:
    """
    Decode one server message.

    Raises:
        ProtocolError: invalid JSON, non-object payload or a known type whose
            payload is missing required fields.
    """
    if isinstance(raw, dict):
        data = raw
        raw_text = None
    else:
        raw_text = raw.decode('utf-8', errors='replace') if isinstance(raw, (bytes, bytearray)) else raw
        try:
            data = json.loads(raw_text)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Failed to parse server response: {e}", raw=raw_text) from e

    if not isinstance(data, dict):
        raise ProtocolError("Server message is not a JSON object", raw=raw_text)

    message_type = data.get('type')
    timestamp = _parse_timestamp(data)

    try:
        kind = InboundMessageType(message_type)
    except ValueError:
        return UnknownMessage(message_type=str(message_type), payload=data, timestamp=timestamp)

    try:
        if kind is InboundMessageType.TRACKING_RESULTS:
            results = data.get('results')
            if not isinstance(results, dict):
                raise ProtocolError("tracking_results without 'results' object", raw=raw_text)
            return TrackingResultsMessage(results=TrackingResults.from_dict(results), timestamp=timestamp)

        if kind is InboundMessageType.DETECTIONS:
            results = data.get('results')
            if not isinstance(results, dict):
                raise ProtocolError("detections without 'results' object", raw=raw_text)
            return DetectionsMessage(
                results={
                    str(model_name): ModelDetectionResult.from_dict(str(model_name), result or {})
                    for model_name, result in results.items()
                },
                timestamp=timestamp
            )

        if kind is InboundMessageType.TRACKING_CONFIGURED:
            return TrackingConfiguredMessage(config=data.get('config'), timestamp=timestamp)

        if kind is InboundMessageType.TRACKING_STARTED:
            return TrackingStartedMessage(stream_id=data.get('stream_id'), timestamp=timestamp)

        if kind is InboundMessageType.TRACKING_STOPPED:
            return TrackingStoppedMessage(stream_id=data.get('stream_id'), timestamp=timestamp)

        if kind is InboundMessageType.TRACKER_STATS:
            stats = data.get('stats') or {}
            if not isinstance(stats, dict):
                raise ProtocolError("tracker_stats payload is not an object", raw=raw_text)
            return TrackerStatsMessage(stats=stats, timestamp=timestamp)

        if kind is InboundMessageType.ZONE_DEFINED:
            return ZoneDefinedMessage(zone_id=str(data.get('zone_id', '')), timestamp=timestamp)

        if kind is InboundMessageType.ERROR:
            return ErrorMessage(message=str(data.get('message') or 'Unknown error'), timestamp=timestamp)

    except ProtocolError:
        raise
    except (KeyError, IndexError, AttributeError, TypeError, ValueError) as e:
        raise ProtocolError(f"Malformed '{kind.value}' payload: {e}", raw=raw_text) from e

    # Every InboundMessageType is handled above
    raise ProtocolError(f"Unhandled message type: {kind.value}", raw=raw_text)
