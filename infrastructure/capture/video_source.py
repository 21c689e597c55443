import cv2
import logging
from typing import Callable, Optional, Tuple, Union

import numpy as np

from core.exceptions import FrameEncodingError

logger = logging.getLogger(__name__)

Source = Union[int, str]


def parse_source(value: Union[int, str]) -> Source:
    """'0' -> camera index 0, anything else is a file path or stream URL"""
    if isinstance(value, int):
        return value
    value = value.strip()
    return int(value) if value.isdigit() else value


def encode_image_jpeg(frame: np.ndarray, quality: int = 80) -> bytes:
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FrameEncodingError("cv2.imencode failed to produce a JPEG")
    return buffer.tobytes()


class VideoSource:
    """Camera / video stream reader, giữ lại frame mới nhất cho overlay"""

    def __init__(
        self,
        source: Union[int, str] = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        jpeg_quality: int = 80,
        capture_factory: Callable[[Source], "cv2.VideoCapture"] = cv2.VideoCapture
    ):
        self.source = parse_source(source)
        self.width = width
        self.height = height
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory
        self.capture = None
        self.latest_frame: Optional[np.ndarray] = None
        self.frames_read = 0

    @property
    def is_opened(self) -> bool:
        return self.capture is not None and self.capture.isOpened()

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the latest decoded frame"""
        if self.latest_frame is None:
            return None
        h, w = self.latest_frame.shape[:2]
        return (w, h)

    def open(self) -> bool:
        if self.source is None or (isinstance(self.source, str) and self.source == ""):
            logger.error("Video source is empty or None")
            return False

        try:
            self.capture = self._capture_factory(self.source)
            # Chỉ giữ frame mới nhất
            self.capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            if self.width:
                self.capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            if self.height:
                self.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

            if not self.capture.isOpened():
                logger.error("Failed to open video source: %s", self.source)
                return False

            logger.info("Video source opened: %s", self.source)
            return True
        except cv2.error as e:
            logger.error("Exception while opening video source %s: %s", self.source, str(e))
            return False

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.is_opened:
            return None
        try:
            ret, frame = self.capture.read()
        except cv2.error as e:
            logger.error("Error reading frame: %s", str(e))
            return None

        if not ret or frame is None:
            return None
        self.latest_frame = frame
        self.frames_read += 1
        return frame

    def latest_jpeg(self) -> Optional[bytes]:
        """JPEG of the latest decoded frame, None before the first read"""
        frame = self.latest_frame
        if frame is None:
            return None
        return encode_image_jpeg(frame, self.jpeg_quality)

    def capture_jpeg(self) -> Optional[bytes]:
        """Read one frame and return it JPEG-encoded, None when no frame is available"""
        frame = self.read_frame()
        if frame is None:
            return None
        return encode_image_jpeg(frame, self.jpeg_quality)

    def close(self):
        if self.capture is not None:
            self.capture.release()
            self.capture = None
            logger.info("Video source closed: %s", self.source)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
