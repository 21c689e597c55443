# services/overlay/renderer.py
import logging
import math
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from core.models import ModelDetectionResult, TrackedObject, TrackingResults, ZoneDefinition
from services.overlay.draw_instructions import (
    Arrow,
    Circle,
    DrawInstruction,
    InfoBlock,
    Label,
    Point,
    Polygon,
    Polyline,
    Rectangle,
)
from shared.config.visual_configs import (
    DEFAULT_OVERLAY_STYLE,
    TRACK_COLOR_PALETTE,
    TRAJECTORY_HISTORY,
    ZONE_COLOR,
    ZONE_OCCUPIED_COLOR,
    OverlayStyle,
    model_color,
)

logger = logging.getLogger(__name__)

Size = Tuple[float, float]


# =============================================================================
# Coordinate mapping
# =============================================================================
class CoordinateTransform:
    """Maps source-frame pixels onto the display surface"""

    def __init__(self, source_size: Size, display_size: Size):
        source_w, source_h = source_size
        display_w, display_h = display_size
        if source_w <= 0 or source_h <= 0:
            raise ValueError(f"Source size must be positive, got {source_w}x{source_h}")
        if display_w < 0 or display_h < 0:
            raise ValueError(f"Display size must not be negative, got {display_w}x{display_h}")

        self.source_size = (source_w, source_h)
        self.display_size = (display_w, display_h)
        self.scale_x = display_w / source_w
        self.scale_y = display_h / source_h

    @classmethod
    def identity(cls, size: Size) -> 'CoordinateTransform':
        return cls(size, size)

    def point(self, x: float, y: float) -> Point:
        return (x * self.scale_x, y * self.scale_y)

    def box(self, x1: float, y1: float, x2: float, y2: float) -> Tuple[float, float, float, float]:
        return (x1 * self.scale_x, y1 * self.scale_y, x2 * self.scale_x, y2 * self.scale_y)

    def vector(self, vx: float, vy: float) -> Point:
        return (vx * self.scale_x, vy * self.scale_y)


# =============================================================================
# Track colors
# =============================================================================
class TrackColorRegistry:
    """
    Gán màu cho track id lần đầu gặp, không bao giờ đổi màu trong session.

    Màu thứ n (theo thứ tự gán) là palette[n % len(palette)], palette được dùng lại khi hết.
    `max_entries` (mặc định tắt) giới hạn số id được nhớ, bỏ id ít gặp gần đây nhất.
    """

    def __init__(self, palette: Sequence[str] = TRACK_COLOR_PALETTE, max_entries: Optional[int] = None):
        if not palette:
            raise ValueError("Track color palette must not be empty")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.palette = tuple(palette)
        self.max_entries = max_entries
        self._colors: 'OrderedDict[str, str]' = OrderedDict()
        # Counts every assignment; eviction does not rewind it
        self._assigned = 0

    def __len__(self) -> int:
        return len(self._colors)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._colors

    def color_for(self, track_id: str) -> str:
        color = self._colors.get(track_id)
        if color is not None:
            if self.max_entries is not None:
                self._colors.move_to_end(track_id)
            return color

        color = self.palette[self._assigned % len(self.palette)]
        self._assigned += 1
        self._colors[track_id] = color

        if self.max_entries is not None and len(self._colors) > self.max_entries:
            evicted, _ = self._colors.popitem(last=False)
            logger.debug(f"🎨 Evicted color for track {evicted}")
        return color

    def as_dict(self) -> Dict[str, str]:
        return dict(self._colors)

    def reset(self) -> None:
        self._colors.clear()
        self._assigned = 0


# =============================================================================
# Renderer
# =============================================================================
@dataclass
class OverlayConfig:
    show_bounding_boxes: bool = True
    show_trajectories: bool = True
    show_velocity_vectors: bool = True
    show_zones: bool = True
    show_object_info: bool = True
    show_speed_info: bool = True
    trajectory_history: int = TRAJECTORY_HISTORY
    max_track_colors: Optional[int] = None

    @classmethod
    def from_settings(cls, overlay_settings) -> 'OverlayConfig':
        return cls(
            show_bounding_boxes=overlay_settings.show_bounding_boxes,
            show_trajectories=overlay_settings.show_trajectories,
            show_velocity_vectors=overlay_settings.show_velocity_vectors,
            show_zones=overlay_settings.show_zones,
            show_object_info=overlay_settings.show_object_info,
            show_speed_info=overlay_settings.show_speed_info,
            trajectory_history=overlay_settings.trajectory_history,
            max_track_colors=overlay_settings.max_track_colors
        )


def format_info_lines(track_id: str, obj: TrackedObject, show_speed: bool = True) -> Tuple[str, ...]:
    lines = [f"ID: {track_id[:6]}", obj.class_name]
    if show_speed and obj.speed_info is not None:
        lines.append(f"Speed: {math.floor(obj.speed_info.speed_m_per_sec)}")
        lines.append(f"Avg Speed: {math.floor(obj.speed_info.avg_speed_m_per_sec)}")
    return tuple(lines)


def format_detection_label(label: str, confidence: float) -> str:
    return f"{label} {confidence * 100:.0f}%"


class OverlayRenderer:
    """
    Turns the latest result message into a list of draw instructions.

    Each render replaces the previous overlay. Only the track color map and
    the per-track trajectory buffers persist across messages.
    """

    def __init__(
        self,
        config: Optional[OverlayConfig] = None,
        style: OverlayStyle = DEFAULT_OVERLAY_STYLE,
        colors: Optional[TrackColorRegistry] = None
    ):
        self.config = config or OverlayConfig()
        self.style = style
        self.colors = colors or TrackColorRegistry(max_entries=self.config.max_track_colors)
        self.trajectories: Dict[str, Deque[Point]] = {}
        self.instructions: List[DrawInstruction] = []

    # ------------------------------------------------------------------
    # Trajectories
    # ------------------------------------------------------------------
    def _update_trajectories(self, results: TrackingResults) -> None:
        for track_id in list(self.trajectories):
            if track_id not in results.tracked_objects:
                del self.trajectories[track_id]

        for track_id, obj in results.tracked_objects.items():
            history = self.trajectories.get(track_id)
            if history is None:
                history = deque(maxlen=self.config.trajectory_history)
                self.trajectories[track_id] = history
            history.append(obj.centroid)

    # ------------------------------------------------------------------
    # Render
    # ------------------------------------------------------------------
    def render_tracking(
        self,
        results: TrackingResults,
        transform: CoordinateTransform,
        zones: Iterable[ZoneDefinition] = ()
    ) -> List[DrawInstruction]:
        self._update_trajectories(results)
        style = self.style
        instructions: List[DrawInstruction] = []

        if self.config.show_zones:
            instructions.extend(self._render_zones(zones, results, transform))

        for track_id, obj in results.tracked_objects.items():
            color = self.colors.color_for(track_id)
            x1, y1, x2, y2 = transform.box(*obj.bbox)
            cx, cy = transform.point(*obj.centroid)

            if self.config.show_trajectories:
                points = tuple(transform.point(x, y) for x, y in self.trajectories.get(track_id, ()))
                if len(points) >= 2:
                    instructions.append(Polyline(points, color, style.trajectory_line_width))

            if self.config.show_bounding_boxes:
                instructions.append(Rectangle(x1, y1, x2, y2, color, style.track_line_width))

            instructions.append(Circle(cx, cy, style.centroid_radius, color))

            if self.config.show_velocity_vectors:
                vx, vy = transform.vector(*obj.velocity)
                if vx or vy:
                    end = (cx + vx * style.velocity_scale, cy + vy * style.velocity_scale)
                    instructions.append(Arrow((cx, cy), end, color, style.trajectory_line_width))

            if self.config.show_object_info:
                instructions.append(InfoBlock(
                    lines=format_info_lines(track_id, obj, self.config.show_speed_info),
                    x=x1,
                    y=y1,
                    color=color,
                    background=style.info_background,
                    width=style.info_block_width,
                    line_height=style.info_line_height,
                    font_size=style.info_font_size
                ))

        self.instructions = instructions
        return instructions

    def _render_zones(
        self,
        zones: Iterable[ZoneDefinition],
        results: TrackingResults,
        transform: CoordinateTransform
    ) -> List[DrawInstruction]:
        instructions: List[DrawInstruction] = []
        for zone in zones:
            occupants = results.zone_occupancy.get(zone.zone_id, ())
            color = ZONE_OCCUPIED_COLOR if occupants else ZONE_COLOR
            label = f"{zone.zone_id} ({len(occupants)})" if occupants else zone.zone_id
            instructions.append(Polygon(
                zone_id=zone.zone_id,
                points=tuple(transform.point(x, y) for x, y in zone.polygon_points),
                color=color,
                line_width=self.style.detection_line_width,
                label=label
            ))
        return instructions

    def render_detections(
        self,
        results_by_model: Dict[str, ModelDetectionResult],
        transform: CoordinateTransform
    ) -> List[DrawInstruction]:
        style = self.style
        instructions: List[DrawInstruction] = []

        for model_name, result in results_by_model.items():
            color = model_color(model_name)
            for detection in result.detections:
                x1, y1, x2, y2 = transform.box(*detection.bbox)
                if self.config.show_bounding_boxes:
                    instructions.append(Rectangle(x1, y1, x2, y2, color, style.detection_line_width))
                if self.config.show_object_info:
                    instructions.append(Label(
                        text=format_detection_label(detection.label, detection.confidence),
                        x=x1,
                        y=y1,
                        color=style.label_text_color,
                        background=color,
                        font_size=style.label_font_size
                    ))

        self.instructions = instructions
        return instructions

    def clear(self) -> None:
        """Drop the current overlay, keep colors and trajectories"""
        self.instructions = []

    def reset(self) -> None:
        """New session: forget colors, trajectories and the current overlay"""
        self.colors.reset()
        self.trajectories.clear()
        self.instructions = []
