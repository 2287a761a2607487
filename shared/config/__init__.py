"""
Configuration module: Settings and logging.
"""

from shared.config.settings import settings, get_settings, Settings
from shared.config.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
