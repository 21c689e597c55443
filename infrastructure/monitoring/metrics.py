# /infrastructure/monitoring/metrics.py
import time
import logging
from typing import List, Dict, Any, Optional
from collections import Counter, deque
from dataclasses import dataclass
import threading

# Prometheus
from prometheus_client import start_http_server, Gauge


@dataclass
class ModelLoadMetric:
    """Kết quả load một model qua REST API"""
    model_name: str
    timestamp: float
    success: bool = True
    error_message: Optional[str] = None


class ClientMetrics:
    """Counters cho tracking client: frames gửi đi, messages nhận về, reconnect"""

    def __init__(self, max_history: int = 100):
        self.logger = logging.getLogger(__name__)
        self.lock = threading.Lock()

        self.load_metrics: Dict[str, ModelLoadMetric] = {}
        self.skip_reasons: Counter = Counter()
        self.recent_errors: deque = deque(maxlen=max_history)
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.frames_sent = 0
        self.frames_skipped = 0
        self.frames_failed = 0
        self.bytes_sent = 0
        self.messages_received = 0
        self.protocol_errors = 0
        self.reconnects = 0
        self.start_time = time.time()

    def record_frame_sent(self, size_bytes: int, models: Optional[List[str]] = None):
        with self.lock:
            self.frames_sent += 1
            self.bytes_sent += size_bytes

    def record_frame_skipped(self, reason: str):
        with self.lock:
            self.frames_skipped += 1
            self.skip_reasons[reason] += 1

    def record_frame_failed(self, error: Exception):
        with self.lock:
            self.frames_failed += 1
            self.recent_errors.append((time.time(), f"{type(error).__name__}: {error}"))

    def record_message(self, message: Any = None):
        with self.lock:
            self.messages_received += 1

    def record_protocol_error(self, error: Exception):
        with self.lock:
            self.protocol_errors += 1
            self.recent_errors.append((time.time(), f"{type(error).__name__}: {error}"))

    def record_reconnect(self, attempt: int, delay: float):
        with self.lock:
            self.reconnects += 1

    def record_model_load(self, model_name: str, success: bool = True, error: Optional[Exception] = None):
        """Ghi lại kết quả load model"""
        with self.lock:
            self.load_metrics[model_name] = ModelLoadMetric(
                model_name=model_name,
                timestamp=time.time(),
                success=success,
                error_message=str(error) if error else None
            )

        if success:
            self.logger.info(f"📊 Model {model_name} loaded")
        else:
            self.logger.error(f"📊 Model {model_name} load failed: {error}")

    def get_overall_stats(self) -> Dict[str, Any]:
        """Lấy tổng quan statistics"""
        with self.lock:
            uptime = time.time() - self.start_time

            return {
                'uptime_seconds': uptime,
                'frames_sent': self.frames_sent,
                'frames_skipped': self.frames_skipped,
                'frames_failed': self.frames_failed,
                'bytes_sent': self.bytes_sent,
                'messages_received': self.messages_received,
                'protocol_errors': self.protocol_errors,
                'reconnects': self.reconnects,
                'avg_frames_per_second': self.frames_sent / max(uptime, 1),
                'skip_reasons': dict(self.skip_reasons),
                'models_loaded': [name for name, m in self.load_metrics.items() if m.success],
                'models_failed': [name for name, m in self.load_metrics.items() if not m.success]
            }

    def reset_metrics(self):
        """Reset tất cả metrics"""
        with self.lock:
            self.load_metrics.clear()
            self.skip_reasons.clear()
            self.recent_errors.clear()
            self._reset_counters()

        self.logger.info("📊 All metrics reset")


# ================= Prometheus Exporter ================= #

_prometheus_initialized = False
GAUGE_FRAMES_SENT = None
GAUGE_FRAMES_SKIPPED = None
GAUGE_MESSAGES_RECEIVED = None
GAUGE_RECONNECTS = None

def setup_prometheus_metrics(client_name: str, port: int = 9091):
    """
    Khởi động Prometheus metrics exporter cho tracking client.
    Scrape tại http://localhost:<port>/metrics.
    """
    global _prometheus_initialized
    global GAUGE_FRAMES_SENT, GAUGE_FRAMES_SKIPPED, GAUGE_MESSAGES_RECEIVED, GAUGE_RECONNECTS

    if _prometheus_initialized:
        return

    start_http_server(port)
    logging.getLogger(__name__).info(
        f"📊 Prometheus metrics server started for {client_name} on port {port}"
    )
    _prometheus_initialized = True

    GAUGE_FRAMES_SENT = Gauge(
        "tracking_client_frames_sent",
        "Số frame đã gửi lên server",
        ["client"]
    )
    GAUGE_FRAMES_SKIPPED = Gauge(
        "tracking_client_frames_skipped",
        "Số lần capture bị bỏ qua",
        ["client"]
    )
    GAUGE_MESSAGES_RECEIVED = Gauge(
        "tracking_client_messages_received",
        "Số result message nhận được",
        ["client"]
    )
    GAUGE_RECONNECTS = Gauge(
        "tracking_client_reconnects",
        "Số lần reconnect đã schedule",
        ["client"]
    )

    # Init values
    for gauge in (GAUGE_FRAMES_SENT, GAUGE_FRAMES_SKIPPED, GAUGE_MESSAGES_RECEIVED, GAUGE_RECONNECTS):
        gauge.labels(client=client_name).set(0)


def update_prometheus_metrics(client_name: str, metrics: "ClientMetrics") -> bool:
    """
    Cập nhật metrics từ ClientMetrics sang Prometheus Gauge
    """
    if not _prometheus_initialized:
        return False

    GAUGE_FRAMES_SENT.labels(client=client_name).set(metrics.frames_sent)
    GAUGE_FRAMES_SKIPPED.labels(client=client_name).set(metrics.frames_skipped)
    GAUGE_MESSAGES_RECEIVED.labels(client=client_name).set(metrics.messages_received)
    GAUGE_RECONNECTS.labels(client=client_name).set(metrics.reconnects)
    return True
