# services/statistics/aggregator.py
import logging
import time
from typing import Any, Callable, Dict, Optional

from core.models import TrackingResults, TrackingSummary

logger = logging.getLogger(__name__)

FPS_WINDOW_MS = 1000.0

# Below this a message timestamp is taken as unix seconds instead of milliseconds
_SECONDS_THRESHOLD = 1e11


def _now_ms() -> float:
    return time.time() * 1000.0


def normalize_timestamp_ms(timestamp: float) -> float:
    if timestamp < _SECONDS_THRESHOLD:
        return timestamp * 1000.0
    return float(timestamp)


class StatisticsAggregator:
    """
    Rolling receive statistics cho các result message.

    - fps: số message trong cửa sổ 1 giây vừa kết thúc
    - latency_ms: now - timestamp của message gần nhất có timestamp
    - track/class counts: thay toàn bộ theo summary mới nhất
    """

    def __init__(self, clock: Callable[[], float] = _now_ms):
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.fps = 0.0
        self.latency_ms = 0.0
        self.messages_received = 0
        self.summary = TrackingSummary()
        self._window_start: Optional[float] = None
        self._window_count = 0

    def record_message(self, timestamp: Optional[float] = None, now_ms: Optional[float] = None) -> None:
        """Account for one result message (detections or tracking_results)"""
        now = self._clock() if now_ms is None else now_ms
        self.messages_received += 1

        if timestamp is not None:
            self.latency_ms = now - normalize_timestamp_ms(timestamp)

        if self._window_start is None:
            self._window_start = now

        self._window_count += 1
        if now - self._window_start >= FPS_WINDOW_MS:
            self.fps = float(self._window_count)
            self._window_count = 0
            self._window_start = now

    def record_tracking(
        self,
        results: TrackingResults,
        timestamp: Optional[float] = None,
        now_ms: Optional[float] = None
    ) -> None:
        self.summary = results.summary
        self.record_message(timestamp, now_ms)

    def on_tracking_results(self, results: TrackingResults, message) -> None:
        """Handler for the router's 'tracking_results' event"""
        self.record_tracking(results, message.timestamp)

    def on_detections(self, results, message) -> None:
        """Handler for the router's 'detections' event"""
        self.record_message(message.timestamp)

    def snapshot(self) -> Dict[str, Any]:
        return {
            'fps': self.fps,
            'latency_ms': self.latency_ms,
            'total_tracks': self.summary.total_tracks,
            'active_tracks': self.summary.active_tracks,
            'class_counts': dict(self.summary.class_counts),
            'messages_received': self.messages_received
        }
