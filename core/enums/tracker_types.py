"""
Tracker types enumeration for the Smart Camera tracking client.
"""

from enum import Enum


class TrackerType(str, Enum):
    """Tracker algorithms supported by the inference server"""
    CENTROID = "centroid"
    KALMAN = "kalman"
    DEEP_SORT = "deep_sort"
    BYTE_TRACK = "byte_track"
