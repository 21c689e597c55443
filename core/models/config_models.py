# ================================
# core/models/config_models.py
# ================================
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any

from core.enums import TrackerType

DEFAULT_TRACKING_FPS = 15.0

# Flat override keys accepted by TrackingConfig.merged()
_TRACKER_PARAM_KEYS = ('max_disappeared', 'max_distance', 'use_kalman')
_SPEED_CONFIG_KEYS = ('fps', 'pixel_to_meter_ratio')


class TrackerParams(BaseModel):
    max_disappeared: int = 30
    max_distance: float = 100.0
    use_kalman: bool = True

    @field_validator('max_disappeared', 'max_distance')
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Tracker parameters must be non-negative")
        return v


class SpeedConfig(BaseModel):
    fps: float = DEFAULT_TRACKING_FPS
    pixel_to_meter_ratio: float = 0.01

    @field_validator('fps', 'pixel_to_meter_ratio')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Speed config values must be positive")
        return v


class TrackingConfig(BaseModel):
    """
    Desired tracker configuration held by the client.

    The server is the source of truth once it acknowledges the config with
    a 'tracking_configured' message.
    """
    tracker_type: TrackerType = TrackerType.CENTROID
    tracker_params: TrackerParams = Field(default_factory=TrackerParams)
    speed_config: Optional[SpeedConfig] = Field(default_factory=SpeedConfig)

    @property
    def frame_rate(self) -> float:
        """Capture rate used by the frame scheduler"""
        if self.speed_config is None:
            return DEFAULT_TRACKING_FPS
        return self.speed_config.fps

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the 'configure_tracking' message"""
        return self.model_dump(mode='json', exclude_none=True)

    def merged(self, **overrides) -> 'TrackingConfig':
        """
        Return a new config with partial overrides applied.

        Accepts nested keys (tracker_type, tracker_params, speed_config) as
        well as flat keys such as max_distance or fps.
        """
        data = self.model_dump()

        if overrides.get('tracker_type') is not None:
            data['tracker_type'] = overrides['tracker_type']

        tracker_params = dict(data['tracker_params'])
        tracker_params.update(overrides.get('tracker_params') or {})
        for key in _TRACKER_PARAM_KEYS:
            if overrides.get(key) is not None:
                tracker_params[key] = overrides[key]
        data['tracker_params'] = tracker_params

        speed_config = dict(data['speed_config'] or SpeedConfig().model_dump())
        speed_overrides = dict(overrides.get('speed_config') or {})
        for key in _SPEED_CONFIG_KEYS:
            if overrides.get(key) is not None:
                speed_overrides[key] = overrides[key]
        if speed_overrides or data['speed_config'] is not None:
            speed_config.update({k: v for k, v in speed_overrides.items() if v is not None})
            data['speed_config'] = speed_config

        return TrackingConfig.model_validate(data)
