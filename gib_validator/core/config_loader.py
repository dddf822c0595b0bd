# Path: gib_validator/core/config_loader.py
"""
GIB Validator Configuration Loader

Centralized configuration management for the validator service.
Loads settings from .env file and provides validated access.

Architecture:
- Single source for all configuration values
- Validation of required settings
- Type conversion and defaults
- Asset-relative defaults derived from GIB_ASSETS_DIR
"""

import logging
import os
from pathlib import Path
from typing import Optional, Any, Dict
from dotenv import load_dotenv

from gib_validator.exceptions import ConfigurationError
from gib_validator.constants import (
    ENV_ASSETS_DIR,
    ENV_PROFILES_FILE,
    ENV_HISTORY_DB_URL,
    ENV_LOG_DIR,
    ENV_LOG_LEVEL,
    ENV_LOG_CONSOLE,
    ENV_CACHE_TTL_SECONDS,
    ENV_CACHE_MAX_ENTRIES,
    ENV_SYNC_ENABLED,
    ENV_SYNC_CONNECT_TIMEOUT_MS,
    ENV_SYNC_READ_TIMEOUT_MS,
    ENV_SYNC_PACKAGE_TIMEOUT,
    ENV_SYNC_MAX_DOWNLOAD_MB,
    ENV_SYNC_BASE_URL,
    ENV_SYNC_RETRY_ATTEMPTS,
    ENV_SYNC_AUTO_ON_STARTUP,
    ENV_WATERMARK_REPEAT,
    ENV_UBLTR_SCHEMATRON_TYPE,
    ENV_ADMIN_USERNAME,
    ENV_ADMIN_PASSWORD,
    ENV_TOKEN_EXPIRY_HOURS,
    ENV_ENVIRONMENT,
    ENV_SEVERITY_UNSCOPED,
    ENV_SEVERITY_SCOPED,
    DEFAULT_ASSETS_DIR,
    PROFILES_FILE_NAME,
    HISTORY_DIR,
    HISTORY_DB_NAME,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_READ_TIMEOUT_MS,
    DEFAULT_PACKAGE_TIMEOUT,
    DEFAULT_MAX_DOWNLOAD_MB,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_WATERMARK_REPEAT,
    DEFAULT_UBLTR_SCHEMATRON_TYPE,
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_TOKEN_EXPIRY_HOURS,
    LOGGER_CORE,
)


class ConfigLoader:
    """
    Configuration loader for the validator service.

    Loads and validates all configuration from environment variables.
    Explicit overrides take precedence over the environment, which is
    how embedding applications and tests pin values.

    Example:
        config = ConfigLoader()
        assets_dir = config.get('assets_dir')
        ttl = config.get('cache_ttl_seconds')
    """

    def __init__(self, env_file: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration loader.

        Args:
            env_file: Optional path to .env file. If None, uses the project root .env.
            overrides: Optional values replacing loaded configuration keys
        """
        self._config = {}
        self._overrides = dict(overrides or {})
        self._load_env(env_file)
        self._load_config()
        self._config.update(self._overrides)

    def _load_env(self, env_file: Optional[Path] = None) -> None:
        if env_file:
            load_dotenv(dotenv_path=env_file)
        else:
            current_file = Path(__file__).resolve()
            root_dir = current_file.parent.parent.parent  # core/ -> gib_validator/ -> root
            load_dotenv(dotenv_path=root_dir / '.env')

    def _load_config(self) -> None:
        """Load and validate all configuration values."""
        # Asset layout
        assets_dir = self._overrides.get('assets_dir') or self._get_path(
            ENV_ASSETS_DIR,
            default=Path(DEFAULT_ASSETS_DIR)
        )
        assets_dir = Path(assets_dir).resolve()
        self._config['assets_dir'] = assets_dir
        self._config['profiles_file'] = self._get_path(
            ENV_PROFILES_FILE,
            default=assets_dir / PROFILES_FILE_NAME
        )
        self._config['history_db_url'] = self._get_env(
            ENV_HISTORY_DB_URL,
            default=f"sqlite:///{assets_dir / HISTORY_DIR / HISTORY_DB_NAME}"
        )

        # Logging configuration (file logs only when a directory is given)
        self._config['log_dir'] = self._get_path(ENV_LOG_DIR)
        self._config['log_level'] = self._get_env(ENV_LOG_LEVEL, default='INFO')
        self._config['log_console'] = self._get_bool(ENV_LOG_CONSOLE, default=True)

        # Cache
        self._config['cache_ttl_seconds'] = self._get_int(
            ENV_CACHE_TTL_SECONDS,
            default=DEFAULT_CACHE_TTL_SECONDS
        )
        self._config['cache_max_entries'] = self._get_int(
            ENV_CACHE_MAX_ENTRIES,
            default=DEFAULT_CACHE_MAX_ENTRIES
        )

        # Package sync
        self._config['sync_enabled'] = self._get_bool(ENV_SYNC_ENABLED, default=True)
        self._config['sync_connect_timeout_ms'] = self._get_int(
            ENV_SYNC_CONNECT_TIMEOUT_MS,
            default=DEFAULT_CONNECT_TIMEOUT_MS
        )
        self._config['sync_read_timeout_ms'] = self._get_int(
            ENV_SYNC_READ_TIMEOUT_MS,
            default=DEFAULT_READ_TIMEOUT_MS
        )
        self._config['sync_package_timeout_seconds'] = self._get_int(
            ENV_SYNC_PACKAGE_TIMEOUT,
            default=DEFAULT_PACKAGE_TIMEOUT
        )
        self._config['sync_max_download_mb'] = self._get_int(
            ENV_SYNC_MAX_DOWNLOAD_MB,
            default=DEFAULT_MAX_DOWNLOAD_MB
        )
        for key, default in (
            ('sync_connect_timeout_ms', DEFAULT_CONNECT_TIMEOUT_MS),
            ('sync_read_timeout_ms', DEFAULT_READ_TIMEOUT_MS),
            ('sync_package_timeout_seconds', DEFAULT_PACKAGE_TIMEOUT),
        ):
            if self._config[key] <= 0:
                logging.getLogger(LOGGER_CORE).warning(
                    f"{key} must be positive (got {self._config[key]}), using default {default}"
                )
                self._config[key] = default
        self._config['sync_base_url_override'] = self._get_env(ENV_SYNC_BASE_URL)
        self._config['sync_retry_attempts'] = self._get_int(
            ENV_SYNC_RETRY_ATTEMPTS,
            default=DEFAULT_RETRY_ATTEMPTS
        )
        self._config['sync_auto_on_startup'] = self._get_bool(ENV_SYNC_AUTO_ON_STARTUP, default=True)

        # Validation / transform
        self._config['watermark_repeat'] = self._get_int(
            ENV_WATERMARK_REPEAT,
            default=DEFAULT_WATERMARK_REPEAT
        )
        self._config['ubltr_schematron_type'] = self._get_env(
            ENV_UBLTR_SCHEMATRON_TYPE,
            default=DEFAULT_UBLTR_SCHEMATRON_TYPE
        )
        self._config['severity_unscoped'] = self._get_env(ENV_SEVERITY_UNSCOPED, default='CRITICAL')
        self._config['severity_scoped'] = self._get_env(ENV_SEVERITY_SCOPED, default='WARNING')

        # Admin authentication
        self._config['auth_username'] = self._get_env(ENV_ADMIN_USERNAME, default=DEFAULT_ADMIN_USERNAME)
        self._config['auth_password'] = self._get_env(ENV_ADMIN_PASSWORD, default=DEFAULT_ADMIN_PASSWORD)
        self._config['auth_token_expiry_hours'] = self._get_int(
            ENV_TOKEN_EXPIRY_HOURS,
            default=DEFAULT_TOKEN_EXPIRY_HOURS
        )
        self._config['environment'] = self._get_env(ENV_ENVIRONMENT, default='development')

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def _get_env(self, key: str, required: bool = False, default: Optional[str] = None) -> Optional[str]:
        """
        Get environment variable value.

        Raises:
            ConfigurationError: If required variable not found
        """
        value = os.getenv(key, default)

        if required and value is None:
            raise ConfigurationError(f"Required environment variable not set: {key}")

        return value

    def _get_int(self, key: str, required: bool = False, default: Optional[int] = None) -> Optional[int]:
        value = self._get_env(key, required=required)

        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"Environment variable {key} must be an integer: {value}")

    def _get_bool(self, key: str, required: bool = False, default: Optional[bool] = None) -> Optional[bool]:
        value = self._get_env(key, required=required)

        if value is None:
            return default

        return value.lower() in ('true', '1', 'yes', 'on')

    def _get_path(self, key: str, required: bool = False, default: Optional[Path] = None) -> Optional[Path]:
        value = self._get_env(key, required=required)

        if value is None:
            return default

        return Path(value)


__all__ = ['ConfigLoader']
