# ================================================================================================
# shared/config/logging_config.py - Structured Logging Configuration
# ================================================================================================

import logging
import logging.handlers
import structlog
from pathlib import Path
from typing import List, Optional

def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",  # json, console
    log_file_path: Optional[Path] = Path("./data/logs/smartcamera-tracker.log"),
    log_max_size: str = "50MB",
    log_backup_count: int = 5
) -> None:
    """Configure stdlib logging handlers and structlog processors"""

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if log_file_path is not None:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=_parse_size(log_max_size),
                backupCount=log_backup_count,
                encoding='utf-8'
            )
        )

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

    # websockets logs every frame at debug level
    logging.getLogger("websockets").setLevel(max(logging.INFO, logging.getLogger().level))

    if log_format == "json":
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ]
    else:
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer()
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

def _parse_size(size_str: str) -> int:
    """Parse size string like '100MB' to bytes"""
    size_str = size_str.upper()
    if size_str.endswith('KB'):
        return int(size_str[:-2]) * 1024
    elif size_str.endswith('MB'):
        return int(size_str[:-2]) * 1024 * 1024
    elif size_str.endswith('GB'):
        return int(size_str[:-2]) * 1024 * 1024 * 1024
    else:
        return int(size_str)

def get_logger(name: str = "smartcamera.tracker"):
    """Structured logger for session-level events"""
    return structlog.get_logger(name)
