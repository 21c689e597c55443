"""
Core enumerations package for the Smart Camera tracking client.
"""

from .connection_types import ConnectionState, NORMAL_CLOSURE, ABNORMAL_CLOSURE
from .tracker_types import TrackerType
from .message_types import InboundMessageType, OutboundMessageType

__all__ = [
    # Connection
    'ConnectionState',
    'NORMAL_CLOSURE',
    'ABNORMAL_CLOSURE',

    # Tracking
    'TrackerType',

    # Protocol
    'InboundMessageType',
    'OutboundMessageType'
]
