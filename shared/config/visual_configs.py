# ================================================================================================
# shared/config/visual_configs.py - Overlay Colors and Styles
# ================================================================================================

from dataclasses import dataclass
from typing import Dict, Tuple

# Colors are hex strings as sent to UI layers; the OpenCV rasterizer converts them to BGR.

DEFAULT_MODEL_COLOR = '#ffffff'

MODEL_COLORS: Dict[str, str] = {
    'face_detection': '#ff0000',
    'cap_detection': '#00ff00',
    'person_detection': '#0000ff',
    'vehicle_detection': '#ff00ff',
    'animal_detection': '#ffff00',
    'object_detection': '#ff8000',
}

TRACK_COLOR_PALETTE: Tuple[str, ...] = (
    '#FF6B6B', '#4ECDC4', '#45B7D1', '#96CEB4', '#FFEAA7',
    '#DDA0DD', '#98D8E8', '#F7DC6F', '#BB8FCE', '#85C1E9'
)

@dataclass(frozen=True)
class OverlayStyle:
    """Kích thước nét vẽ / font cho overlay"""
    detection_line_width: int = 2
    track_line_width: int = 3
    centroid_radius: int = 5
    label_font_size: int = 14
    info_font_size: int = 13
    info_line_height: int = 16
    info_block_width: int = 120
    trajectory_line_width: int = 2
    velocity_scale: float = 1.0
    info_background: str = '#000000cc'
    label_text_color: str = '#ffffff'

DEFAULT_OVERLAY_STYLE = OverlayStyle()

def model_color(model_name: str) -> str:
    """Per-model color for the detection overlay, white for unknown models"""
    return MODEL_COLORS.get(model_name, DEFAULT_MODEL_COLOR)

def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """'#RRGGBB' or '#RRGGBBAA' -> (B, G, R) for OpenCV"""
    value = color.lstrip('#')
    if len(value) not in (6, 8):
        raise ValueError(f"Invalid hex color: {color}")
    r, g, b = int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    return (b, g, r)

def hex_alpha(color: str) -> float:
    """Alpha channel of '#RRGGBBAA' as 0..1 (1.0 when absent)"""
    value = color.lstrip('#')
    if len(value) == 8:
        return int(value[6:8], 16) / 255.0
    return 1.0

ZONE_COLOR = '#00ffff'
ZONE_OCCUPIED_COLOR = '#ff4040'
TRAJECTORY_HISTORY = 30
