# services/overlay/canvas.py
"""OpenCV rasterizer for overlay draw instructions (BGR numpy frames)."""
import logging
from typing import Iterable, Tuple

import cv2
import numpy as np

from services.overlay.draw_instructions import (
    Arrow,
    Circle,
    DrawInstruction,
    InfoBlock,
    Label,
    Polygon,
    Polyline,
    Rectangle,
)
from shared.config.visual_configs import hex_alpha, hex_to_bgr
from shared.decorators.timing import time_execution

logger = logging.getLogger(__name__)

_FONT = cv2.FONT_HERSHEY_SIMPLEX


def _pt(x: float, y: float) -> Tuple[int, int]:
    return (int(round(x)), int(round(y)))


def _font_scale(font_size: int) -> float:
    # HERSHEY_SIMPLEX at scale 1.0 is roughly 24 px tall
    return font_size / 24.0


def _fill_rect(frame: np.ndarray, x1: float, y1: float, x2: float, y2: float, color: str) -> None:
    """Filled rectangle, alpha-blended when the color carries an alpha channel"""
    h, w = frame.shape[:2]
    left, top = max(0, int(x1)), max(0, int(y1))
    right, bottom = min(w, int(x2)), min(h, int(y2))
    if right <= left or bottom <= top:
        return

    alpha = hex_alpha(color)
    roi = frame[top:bottom, left:right]
    fill = np.empty_like(roi)
    fill[:] = hex_to_bgr(color)
    if alpha >= 1.0:
        roi[:] = fill
    else:
        cv2.addWeighted(fill, alpha, roi, 1.0 - alpha, 0, dst=roi)


def _draw_label(frame: np.ndarray, item: Label) -> None:
    scale = _font_scale(item.font_size)
    (text_w, text_h), baseline = cv2.getTextSize(item.text, _FONT, scale, 1)
    top = item.y - text_h - baseline - 6
    _fill_rect(frame, item.x, top, item.x + text_w + 8, item.y, item.background)
    cv2.putText(frame, item.text, _pt(item.x + 4, item.y - baseline - 3), _FONT, scale,
                hex_to_bgr(item.color), 1, cv2.LINE_AA)


def _draw_info_block(frame: np.ndarray, item: InfoBlock) -> None:
    count = len(item.lines)
    top = item.y - count * item.line_height - 5
    _fill_rect(frame, item.x, top, item.x + item.width, top + count * item.line_height + 10, item.background)

    scale = _font_scale(item.font_size)
    color = hex_to_bgr(item.color)
    for index, line in enumerate(item.lines):
        baseline_y = item.y - count * item.line_height + index * item.line_height + 12
        cv2.putText(frame, line, _pt(item.x + 5, baseline_y), _FONT, scale, color, 1, cv2.LINE_AA)


def _draw_polygon(frame: np.ndarray, item: Polygon) -> None:
    points = np.array([_pt(x, y) for x, y in item.points], dtype=np.int32).reshape((-1, 1, 2))
    cv2.polylines(frame, [points], True, hex_to_bgr(item.color), item.line_width, cv2.LINE_AA)
    if item.label and len(item.points) > 0:
        x, y = item.points[0]
        cv2.putText(frame, item.label, _pt(x + 4, y + 16), _FONT, 0.5, hex_to_bgr(item.color), 1, cv2.LINE_AA)


@time_execution
def draw_instructions(frame: np.ndarray, instructions: Iterable[DrawInstruction]) -> np.ndarray:
    """Rasterize instructions onto frame in place and return it"""
    for item in instructions:
        if isinstance(item, Rectangle):
            cv2.rectangle(frame, _pt(item.x1, item.y1), _pt(item.x2, item.y2),
                          hex_to_bgr(item.color), item.line_width)
        elif isinstance(item, Circle):
            thickness = -1 if item.filled else 1
            cv2.circle(frame, _pt(item.x, item.y), item.radius, hex_to_bgr(item.color), thickness, cv2.LINE_AA)
        elif isinstance(item, Label):
            _draw_label(frame, item)
        elif isinstance(item, InfoBlock):
            _draw_info_block(frame, item)
        elif isinstance(item, Polyline):
            points = np.array([_pt(x, y) for x, y in item.points], dtype=np.int32).reshape((-1, 1, 2))
            cv2.polylines(frame, [points], item.closed, hex_to_bgr(item.color), item.line_width, cv2.LINE_AA)
        elif isinstance(item, Arrow):
            cv2.arrowedLine(frame, _pt(*item.start), _pt(*item.end), hex_to_bgr(item.color),
                            item.line_width, cv2.LINE_AA, tipLength=0.3)
        elif isinstance(item, Polygon):
            _draw_polygon(frame, item)
        else:
            logger.warning(f"⚠️ Unknown draw instruction: {type(item).__name__}")
    return frame
