# services/overlay/draw_instructions.py
"""
Draw instructions produced by the overlay renderer.

All coordinates are display-surface pixels; colors are hex strings
('#RRGGBB' or '#RRGGBBAA').
"""
from dataclasses import dataclass
from typing import Tuple, Union

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rectangle:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str
    line_width: int = 2


@dataclass(frozen=True)
class Label:
    """Text on a filled background anchored at the top-left corner of a box"""
    text: str
    x: float
    y: float
    color: str
    background: str
    font_size: int = 14


@dataclass(frozen=True)
class Circle:
    x: float
    y: float
    radius: int
    color: str
    filled: bool = True


@dataclass(frozen=True)
class InfoBlock:
    """Multi-line text block drawn above (x, y)"""
    lines: Tuple[str, ...]
    x: float
    y: float
    color: str
    background: str
    width: int = 120
    line_height: int = 16
    font_size: int = 13


@dataclass(frozen=True)
class Polyline:
    points: Tuple[Point, ...]
    color: str
    line_width: int = 2
    closed: bool = False


@dataclass(frozen=True)
class Arrow:
    start: Point
    end: Point
    color: str
    line_width: int = 2


@dataclass(frozen=True)
class Polygon:
    zone_id: str
    points: Tuple[Point, ...]
    color: str
    line_width: int = 2
    label: str = ''


DrawInstruction = Union[Rectangle, Label, Circle, InfoBlock, Polyline, Arrow, Polygon]
