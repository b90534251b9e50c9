"""Infrastructure layer for nexify."""

from nexify.infrastructure.config import Config, ConfigManager
from nexify.infrastructure.logger import get_logger, setup_logging

__all__ = [
    "Config",
    "ConfigManager",
    "get_logger",
    "setup_logging",
]
