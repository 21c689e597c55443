"""
Connection state enumeration for the Smart Camera tracking client.
"""

from enum import Enum


class ConnectionState(str, Enum):
    """WebSocket session state"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# WebSocket close codes
NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
