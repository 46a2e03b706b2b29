"""Shared infrastructure: logging, configuration files, reconnection."""

from .config_manager import ConfigManager, get_config_manager
from .logging_config import configure_logging
from .logging_utils import StructuredLogger, get_module_logger

__all__ = [
    "ConfigManager",
    "StructuredLogger",
    "configure_logging",
    "get_config_manager",
    "get_module_logger",
]
