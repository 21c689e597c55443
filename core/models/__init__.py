# Core Models Package
"""
Core data models for the Smart Camera tracking client.
Contains detections, tracking snapshots, tracker configuration and the
typed protocol messages.
"""

from .detection_models import Detection, ModelDetectionResult
from .tracking_models import SpeedInfo, TrackedObject, TrackingSummary, TrackingResults, ZoneDefinition
from .config_models import TrackingConfig, TrackerParams, SpeedConfig, DEFAULT_TRACKING_FPS
from .request_models import ModelRequest, ModelInfo, as_model_requests
from .message_models import (
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
    parse_message
)

__all__ = [
    'Detection',
    'ModelDetectionResult',
    'SpeedInfo',
    'TrackedObject',
    'TrackingSummary',
    'TrackingResults',
    'ZoneDefinition',
    'TrackingConfig',
    'TrackerParams',
    'SpeedConfig',
    'DEFAULT_TRACKING_FPS',
    'ModelRequest',
    'ModelInfo',
    'as_model_requests',
    'InboundMessage',
    'TrackingResultsMessage',
    'DetectionsMessage',
    'TrackingConfiguredMessage',
    'TrackingStartedMessage',
    'TrackingStoppedMessage',
    'TrackerStatsMessage',
    'ZoneDefinedMessage',
    'ErrorMessage',
    'UnknownMessage',
    'parse_message'
]
