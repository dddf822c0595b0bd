# Path: gib_validator/core/logger.py
"""
GIB Validator Logger

Centralized logging configuration for the validator service.

Architecture:
- Component-based logging (core, engine, sync, cli)
- File output only when a log directory is configured
- Configurable log levels
- IPO (Input-Process-Output) structured logging
"""

import logging
from typing import Optional

from gib_validator.core.config_loader import ConfigLoader
from gib_validator.constants import (
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOGGER_ROOT,
    LOGGER_CORE,
    LOGGER_ENGINE,
    LOGGER_SYNC,
    LOGGER_CLI,
)

_COMPONENT_LOGGERS = {
    'core': LOGGER_CORE,
    'engine': LOGGER_ENGINE,
    'sync': LOGGER_SYNC,
    'cli': LOGGER_CLI,
}


class GibValidatorLogger:
    """
    Centralized logger for the validator service.

    Provides component-specific loggers with unified configuration.

    Example:
        logger = get_logger(__name__, 'engine')
        logger.info("[INPUT] Validating invoice.xml (4 KB)")
        logger.info("[PROCESS] Schematron UBLTR_MAIN with profile 'lenient'")
        logger.info("[OUTPUT] 2 errors, 1 suppressed")
    """

    def __init__(self, config: Optional[ConfigLoader] = None):
        self._config = config
        self._configured = False

    @property
    def config(self) -> ConfigLoader:
        if self._config is None:
            self._config = ConfigLoader()
        return self._config

    def configure(self, console_handler: Optional[logging.Handler] = None) -> None:
        """
        Configure logging system for the validator service.

        Args:
            console_handler: Optional handler replacing the default stream handler
                             (the CLI passes a rich handler here)
        """
        if self._configured:
            return

        log_dir = self.config.get('log_dir')
        log_level = getattr(logging, str(self.config.get('log_level', 'INFO')).upper(), logging.INFO)
        console_output = self.config.get('log_console', True)
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        logger = logging.getLogger(LOGGER_ROOT)
        logger.setLevel(log_level)
        logger.handlers.clear()

        if log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)

            activity_handler = logging.FileHandler(log_dir / 'activity.log')
            activity_handler.setLevel(log_level)
            activity_handler.setFormatter(formatter)
            logger.addHandler(activity_handler)

            # Per-component files for the busy components
            for component in ('engine', 'sync'):
                component_handler = logging.FileHandler(log_dir / f'{component}.log')
                component_handler.setLevel(logging.DEBUG)
                component_handler.setFormatter(formatter)
                logging.getLogger(_COMPONENT_LOGGERS[component]).addHandler(component_handler)

            error_handler = logging.FileHandler(log_dir / 'errors.log')
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            logger.addHandler(error_handler)

        if console_output:
            handler = console_handler or logging.StreamHandler()
            handler.setLevel(log_level)
            if console_handler is None:
                handler.setFormatter(formatter)
            logger.addHandler(handler)

        self._configured = True

    def get_logger(self, name: str, component: str = 'core') -> logging.Logger:
        """
        Get logger for specific component.

        Args:
            name: Module name (typically __name__)
            component: Component type ('core', 'engine', 'sync', 'cli')
        """
        prefix = _COMPONENT_LOGGERS.get(component, LOGGER_ROOT)
        return logging.getLogger(f"{prefix}.{name}")


# Global logger instance
_gib_logger = GibValidatorLogger()


def get_logger(name: str, component: str = 'core') -> logging.Logger:
    """
    Get logger for a validator component.

    Loggers are plain stdlib loggers under the 'gib_validator' hierarchy;
    handlers are attached once by configure_logging().

    Example:
        from gib_validator.core.logger import get_logger

        logger = get_logger(__name__, 'sync')
        logger.info("[INPUT] Sync preview requested for efatura")
    """
    return _gib_logger.get_logger(name, component)


def configure_logging(
    config: Optional[ConfigLoader] = None,
    console_handler: Optional[logging.Handler] = None
) -> None:
    """
    Configure the validator logging system.

    Call this once at process start.
    """
    global _gib_logger

    if config:
        _gib_logger = GibValidatorLogger(config)

    _gib_logger.configure(console_handler=console_handler)


__all__ = ['get_logger', 'configure_logging', 'GibValidatorLogger']
