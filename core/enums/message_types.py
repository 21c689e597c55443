"""
Protocol message types for the Smart Camera tracking client.
"""

from enum import Enum


class InboundMessageType(str, Enum):
    """Server -> client message tags"""
    TRACKING_RESULTS = "tracking_results"
    DETECTIONS = "detections"
    TRACKING_CONFIGURED = "tracking_configured"
    TRACKING_STARTED = "tracking_started"
    TRACKING_STOPPED = "tracking_stopped"
    TRACKER_STATS = "tracker_stats"
    ZONE_DEFINED = "zone_defined"
    ERROR = "error"


class OutboundMessageType(str, Enum):
    """Client -> server control message tags"""
    CONFIGURE_TRACKING = "configure_tracking"
    START_TRACKING = "start_tracking"
    STOP_TRACKING = "stop_tracking"
    GET_TRACKER_STATS = "get_tracker_stats"
    DEFINE_ZONE = "define_zone"

