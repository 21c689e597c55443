from .draw_instructions import (
    DrawInstruction,
    Rectangle,
    Label,
    Circle,
    InfoBlock,
    Polyline,
    Arrow,
    Polygon,
)
from .renderer import (
    CoordinateTransform,
    TrackColorRegistry,
    OverlayConfig,
    OverlayRenderer,
    format_info_lines,
    format_detection_label,
)

__all__ = [
    'DrawInstruction',
    'Rectangle',
    'Label',
    'Circle',
    'InfoBlock',
    'Polyline',
    'Arrow',
    'Polygon',
    'CoordinateTransform',
    'TrackColorRegistry',
    'OverlayConfig',
    'OverlayRenderer',
    'format_info_lines',
    'format_detection_label',
]
