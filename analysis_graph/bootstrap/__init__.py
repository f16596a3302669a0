"""
bootstrap/ - Configuration and logging setup.
"""

from .config import (
    GraphConfig,
    MapsApiConfig,
    LoggingConfig,
    load_config,
    get_config,
    reset_config,
)
from .logging import setup_logging, setup_logging_from_config

__all__ = [
    "GraphConfig",
    "MapsApiConfig",
    "LoggingConfig",
    "load_config",
    "get_config",
    "reset_config",
    "setup_logging",
    "setup_logging_from_config",
]
