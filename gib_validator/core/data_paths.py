# Path: gib_validator/core/data_paths.py
"""
GIB Validator Data Paths Manager

Manages all filesystem paths below the asset root.
Creates required directories on demand.

Usage:
    from gib_validator.core.data_paths import AssetPaths

    paths = AssetPaths(config)
    paths.ensure_all_directories()
"""

from pathlib import Path
from typing import Optional

from gib_validator.core.config_loader import ConfigLoader
from gib_validator.core.logger import get_logger
from gib_validator.constants import (
    LOG_PROCESS,
    LOG_OUTPUT,
    HISTORY_DIR,
    SNAPSHOTS_DIR,
    STAGING_DIR,
    AUTO_GENERATED_DIR,
    DEFAULT_TRANSFORMERS_DIR,
)

logger = get_logger(__name__, 'core')


class AssetPaths:
    """
    Asset filesystem paths manager.

    Provides centralized access to live assets, staging, history
    and generated output locations.
    """

    def __init__(self, config: Optional[ConfigLoader] = None):
        self.config = config if config else ConfigLoader()

        self.root: Path = self.config.get('assets_dir')
        self.profiles_file: Path = self.config.get('profiles_file')
        self.staging_root = self.root / STAGING_DIR
        self.history_dir = self.root / HISTORY_DIR
        self.snapshots_root = self.root / SNAPSHOTS_DIR
        self.auto_generated = self.root / AUTO_GENERATED_DIR
        self.default_transformers = self.root / DEFAULT_TRANSFORMERS_DIR

        logger.debug(f"{LOG_PROCESS} Asset paths initialized at {self.root}")

    def staging_dir(self, package_id: str) -> Path:
        return self.staging_root / package_id

    def staging_slot(self, package_id: str) -> Path:
        """Download target of a preview in progress; becomes staging_dir on success."""
        return self.staging_root / f"{package_id}.incoming"

    def snapshot_dir(self, version_id: str) -> Path:
        return self.snapshots_root / version_id

    def ensure_all_directories(self) -> None:
        """Create the asset root and its service-managed subdirectories."""
        directories_to_create = [
            ('Assets Root', self.root),
            ('Staging', self.staging_root),
            ('History', self.history_dir),
            ('Snapshots', self.snapshots_root),
            ('Auto-generated', self.auto_generated),
            ('Default Transformers', self.default_transformers),
        ]

        created_count = 0
        for name, path in directories_to_create:
            if self._ensure_directory(path, name):
                created_count += 1

        if created_count > 0:
            logger.info(f"{LOG_OUTPUT} Created {created_count} new asset directories")

    def _ensure_directory(self, path: Path, name: str) -> bool:
        """
        Ensure directory exists, create if needed.

        Returns:
            True if directory was created, False if already existed
        """
        if path.exists():
            return False
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"{LOG_PROCESS} Created {name} directory: {path}")
        return True


__all__ = ['AssetPaths']
