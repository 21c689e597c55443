# tests/test_canvas_and_capture.py
import numpy as np
import pytest
from unittest.mock import MagicMock

from infrastructure.capture.video_source import VideoSource, encode_image_jpeg, parse_source
from services.overlay import Arrow, Circle, InfoBlock, Label, Polygon, Polyline, Rectangle
from services.overlay.canvas import draw_instructions


def blank(w=64, h=48):
    return np.zeros((h, w, 3), dtype=np.uint8)


def test_rectangle_drawn_in_bgr():
    frame = draw_instructions(blank(), [Rectangle(10, 10, 30, 30, "#ff0000", 1)])
    assert tuple(frame[10, 20]) == (0, 0, 255)
    assert tuple(frame[20, 20]) == (0, 0, 0)


def test_all_instruction_types_render():
    instructions = [
        Rectangle(1, 1, 20, 20, "#00ff00"),
        Circle(30, 30, 3, "#0000ff"),
        Label("car 90%", 5, 40, "#ffffff", "#ff0000b3"),
        InfoBlock(("ID: abc", "car"), 5, 45, "#ffffff", "#000000cc"),
        Polyline(((0, 0), (10, 10), (20, 5)), "#ffff00"),
        Arrow((30, 30), (40, 35), "#ff00ff"),
        Polygon("zone", ((0, 0), (60, 0), (60, 40)), "#00ffff", label="zone"),
    ]
    frame = draw_instructions(blank(), instructions)
    assert frame.any()


def test_parse_source():
    assert parse_source("0") == 0
    assert parse_source(" 2 ") == 2
    assert parse_source("rtsp://cam/stream") == "rtsp://cam/stream"


def test_encode_image_jpeg():
    data = encode_image_jpeg(blank(), quality=80)
    assert data[:2] == b"\xff\xd8"


def fake_capture(frames):
    capture = MagicMock()
    capture.isOpened.return_value = True
    capture.read.side_effect = [(True, f) for f in frames] + [(False, None)]
    return capture


def test_video_source_reads_and_encodes():
    capture = fake_capture([blank(32, 24)])
    source = VideoSource("0", jpeg_quality=70, capture_factory=lambda src: capture)

    assert source.open()
    jpeg = source.capture_jpeg()

    assert jpeg[:2] == b"\xff\xd8"
    assert source.frame_size == (32, 24)
    assert source.frames_read == 1
    assert source.capture_jpeg() is None

    source.close()
    capture.release.assert_called_once()
    assert not source.is_opened


def test_video_source_open_failure():
    capture = MagicMock()
    capture.isOpened.return_value = False
    source = VideoSource("missing.mp4", capture_factory=lambda src: capture)

    assert not source.open()
    assert source.read_frame() is None


def test_empty_source_rejected():
    assert not VideoSource("", capture_factory=MagicMock()).open()


def test_latest_jpeg_reuses_decoded_frame():
    capture = MagicMock()
    capture.isOpened.return_value = True
    capture.read.return_value = (True, blank(32, 24))
    source = VideoSource(0, capture_factory=lambda src: capture)

    assert source.latest_jpeg() is None
    source.open()
    source.read_frame()

    assert source.latest_jpeg()[:2] == b"\xff\xd8"
    assert source.latest_jpeg()[:2] == b"\xff\xd8"
    assert capture.read.call_count == 1
