# app/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
from pathlib import Path

# =============================================================================
# Streaming Config (nested)
# =============================================================================
class StreamingConfig(BaseSettings):
    """Configuration for frame streaming and the WebSocket session"""

    # Reconnect policy
    reconnect_base_delay: float = 3.0   # seconds, multiplied by attempt number
    max_reconnect_attempts: int = 5
    connect_timeout: float = 10.0

    # Frame pacing
    tracking_fps: float = 15.0          # used when speed_config has no fps
    camera_fps: float = 2.0             # detection-only mode
    read_fps: float = 30.0              # local decode rate for the preview window
    max_read_failures: int = 10
    jpeg_quality: int = 80

    # Model loading
    model_load_timeout: float = 30.0

    # Video source
    camera_source: str = "0"            # device index or stream URL
    camera_width: int = 1280
    camera_height: int = 720

    # Validators
    @field_validator('tracking_fps', 'camera_fps', 'read_fps')
    @classmethod
    def validate_fps(cls, v):
        if v <= 0:
            raise ValueError("FPS must be positive")
        return v

    @field_validator('jpeg_quality')
    @classmethod
    def validate_quality(cls, v):
        if not 1 <= v <= 100:
            raise ValueError("JPEG quality must be between 1 and 100")
        return v

    @field_validator('max_reconnect_attempts')
    @classmethod
    def validate_attempts(cls, v):
        if v < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")
        return v

    # -------------------------------------------------------------------------
    # Pydantic Settings Config
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_prefix="STREAMING__",   # map .env variables like STREAMING__TRACKING_FPS
        extra="ignore"
    )


# =============================================================================
# Overlay Config (nested)
# =============================================================================
class OverlaySettings(BaseSettings):
    """Which overlay layers are drawn"""

    show_bounding_boxes: bool = True
    show_trajectories: bool = True
    show_velocity_vectors: bool = True
    show_zones: bool = True
    show_object_info: bool = True
    show_speed_info: bool = True
    trajectory_history: int = 30
    max_track_colors: Optional[int] = None   # None = never evict

    model_config = SettingsConfigDict(
        env_prefix="OVERLAY__",
        extra="ignore"
    )


# =============================================================================
# Main Application Settings
# =============================================================================
class Settings(BaseSettings):
    """Application settings with validation"""

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "SmartCamera.TrackingClient"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Inference Server
    # -------------------------------------------------------------------------
    ws_url: str = "ws://localhost:8000/ws"
    api_base_url: str = "http://localhost:8000"
    api_timeout: int = 30

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------
    enable_metrics: bool = False
    prometheus_port: int = 9091

    log_format: str = "console"  # json, console
    log_file_path: Optional[Path] = Path("./data/logs/smartcamera-tracker.log")
    log_max_size: str = "50MB"
    log_backup_count: int = 5

    # -------------------------------------------------------------------------
    # Nested Configs
    # -------------------------------------------------------------------------
    streaming: StreamingConfig = StreamingConfig()
    overlay: OverlaySettings = OverlaySettings()

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator('ws_url')
    @classmethod
    def validate_ws_url(cls, v):
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("ws_url must start with ws:// or wss://")
        return v

    @field_validator('api_base_url')
    @classmethod
    def validate_api_url(cls, v):
        return v.rstrip('/')

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v not in ('json', 'console'):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    # -------------------------------------------------------------------------
    # Pydantic Settings Config
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Settings instance used by the CLI entry point
settings = Settings()
