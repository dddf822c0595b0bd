# Path: gib_validator/engine/asset_store.py
"""
Asset Store

Traversal-safe access to the live asset tree on disk.

Architecture:
- Every public method takes an asset-relative path ('/'-separated)
- Paths are resolved against the root and rejected if they escape it
- Writes go through a temp file and os.replace so readers never see half a file
- auto-generated/<subdir> holds inspection copies of derived assets
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import AssetNotFoundError, AssetPathError
from gib_validator.constants import AUTO_GENERATED_DIR, LOG_PROCESS

logger = get_logger(__name__, 'engine')


class AssetStore:
    """
    Live asset files keyed by relative path.

    Example:
        store = AssetStore(Path('/srv/assets'))
        xsd = store.read_bytes('validator/earchive/schema/EArsiv.xsd')
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def resolve(self, relative_path: str) -> Path:
        """
        Resolve an asset-relative path to an absolute path inside the root.

        Raises:
            AssetPathError: If the path escapes the asset root
        """
        if relative_path is None:
            raise AssetPathError("Asset path must not be empty")
        candidate = (self.root / relative_path.lstrip('/')).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            raise AssetPathError(f"Path traversal blocked: {relative_path}")
        return candidate

    def exists(self, relative_path: str) -> bool:
        return self.resolve(relative_path).is_file()

    def resolve_existing(self, relative_path: str) -> Path:
        path = self.resolve(relative_path)
        if not path.is_file():
            raise AssetNotFoundError(f"Asset file not found: {relative_path} (root: {self.root})")
        return path

    def read_bytes(self, relative_path: str) -> bytes:
        return self.resolve_existing(relative_path).read_bytes()

    def write_bytes(self, relative_path: str, content: bytes) -> Path:
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix='.tmp-', suffix=target.suffix)
        try:
            with os.fdopen(fd, 'wb') as handle:
                handle.write(content)
            os.replace(tmp_name, target)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"{LOG_PROCESS} Asset written: {relative_path} ({len(content)} bytes)")
        return target

    def delete(self, relative_path: str) -> bool:
        target = self.resolve(relative_path)
        if not target.is_file():
            return False
        target.unlink()
        logger.debug(f"{LOG_PROCESS} Asset deleted: {relative_path}")
        return True

    # ------------------------------------------------------------------
    # auto-generated output
    # ------------------------------------------------------------------

    def write_auto_generated(self, sub_dir: str, file_name: str, content: bytes) -> Path:
        if '/' in file_name or '\\' in file_name or file_name in ('', '.', '..'):
            raise AssetPathError(f"Path traversal blocked: {file_name}")
        return self.write_bytes(f"{AUTO_GENERATED_DIR}/{sub_dir}/{file_name}", content)

    def clear_auto_generated(self, sub_dir: Optional[str] = None) -> None:
        target = self.resolve(f"{AUTO_GENERATED_DIR}/{sub_dir}" if sub_dir else AUTO_GENERATED_DIR)
        if target.is_dir():
            shutil.rmtree(target)
            logger.debug(f"{LOG_PROCESS} Cleared auto-generated output: {target}")


__all__ = ['AssetStore']
