"""Utility modules."""

from .config import Settings, load_config, save_config
from .logging import configure_logging, get_logger, setup_logging

__all__ = [
    "Settings",
    "configure_logging",
    "get_logger",
    "load_config",
    "save_config",
    "setup_logging",
]
