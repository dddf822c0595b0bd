# Path: gib_validator/core/__init__.py
"""
GIB Validator Core Module

Core infrastructure for the validator service.
Provides configuration, paths, and logging.
"""

from .config_loader import ConfigLoader
from .data_paths import AssetPaths
from .logger import get_logger, configure_logging

__all__ = [
    'ConfigLoader',
    'AssetPaths',
    'get_logger',
    'configure_logging',
]
