# Path: gib_validator/sync/diff.py
"""
Asset Diff Service

Compares two asset trees (staged vs live, or snapshot before vs after).

Architecture:
- Summary: every distinct relative path on either side gets exactly one status
  (ADDED, REMOVED, MODIFIED, UNCHANGED); UNCHANGED means byte-identical
- Detail: text files get a unified diff plus both contents; binary or very
  large files are compared by presence and size only
"""

import difflib
from pathlib import Path
from typing import List, Optional, Sequence

from gib_validator.core.logger import get_logger
from gib_validator.models.versioning import FileChangeStatus, FileDiffDetail, FileDiffSummary
from gib_validator.constants import (
    BINARY_SNIFF_BYTES,
    DIFF_CONTEXT_LINES,
    LOG_OUTPUT,
    MAX_TEXT_DIFF_BYTES,
)

logger = get_logger(__name__, 'sync')


def list_relative_files(root: Path, sub_dirs: Optional[Sequence[str]] = None) -> List[str]:
    """Sorted '/'-separated paths of regular files below root (optionally only below sub_dirs)."""
    root = Path(root)
    if not root.is_dir():
        return []
    bases = [root / sub.strip('/') for sub in sub_dirs] if sub_dirs else [root]
    found = set()
    for base in bases:
        if not base.is_dir():
            continue
        for path in base.rglob('*'):
            if path.is_file() and not path.name.startswith('.tmp-'):
                found.add(path.relative_to(root).as_posix())
    return sorted(found)


def is_binary(data: bytes) -> bool:
    return len(data) > MAX_TEXT_DIFF_BYTES or b'\x00' in data[:BINARY_SNIFF_BYTES]


def _decode(data: bytes) -> str:
    return data.decode('utf-8', errors='replace')


class AssetDiffService:
    """
    Example:
        diffs = AssetDiffService().compute_directory_diff(live_root, staging_root, package.target_dirs)
    """

    def compute_directory_diff(
        self,
        old_root: Path,
        new_root: Path,
        sub_dirs: Optional[Sequence[str]] = None
    ) -> List[FileDiffSummary]:
        old_files = set(list_relative_files(old_root, sub_dirs))
        new_files = set(list_relative_files(new_root, sub_dirs))
        diffs = []
        for path in sorted(old_files | new_files):
            old_path = Path(old_root) / path if path in old_files else None
            new_path = Path(new_root) / path if path in new_files else None
            diffs.append(self._summarize(path, old_path, new_path))
        logger.info(
            f"{LOG_OUTPUT} Diff {old_root} -> {new_root}: {len(diffs)} paths, "
            f"{sum(1 for d in diffs if d.status is not FileChangeStatus.UNCHANGED)} changed"
        )
        return diffs

    @staticmethod
    def _summarize(path: str, old_path: Optional[Path], new_path: Optional[Path]) -> FileDiffSummary:
        if old_path is None:
            return FileDiffSummary(path, FileChangeStatus.ADDED, -1, new_path.stat().st_size)
        if new_path is None:
            return FileDiffSummary(path, FileChangeStatus.REMOVED, old_path.stat().st_size, -1)
        old_size, new_size = old_path.stat().st_size, new_path.stat().st_size
        same = old_size == new_size and old_path.read_bytes() == new_path.read_bytes()
        status = FileChangeStatus.UNCHANGED if same else FileChangeStatus.MODIFIED
        return FileDiffSummary(path, status, old_size, new_size)

    def file_detail(self, path: str, old_root: Optional[Path], new_root: Optional[Path]) -> FileDiffDetail:
        """
        Content-level diff of one path; either root may be None or lack the file.
        """
        old_path = Path(old_root) / path if old_root is not None else None
        new_path = Path(new_root) / path if new_root is not None else None
        old_data = old_path.read_bytes() if old_path is not None and old_path.is_file() else None
        new_data = new_path.read_bytes() if new_path is not None and new_path.is_file() else None

        if old_data is None and new_data is None:
            raise FileNotFoundError(f"{path} exists on neither side")
        if old_data is None:
            status = FileChangeStatus.ADDED
        elif new_data is None:
            status = FileChangeStatus.REMOVED
        elif old_data == new_data:
            status = FileChangeStatus.UNCHANGED
        else:
            status = FileChangeStatus.MODIFIED

        old_size = len(old_data) if old_data is not None else -1
        new_size = len(new_data) if new_data is not None else -1
        if any(data is not None and is_binary(data) for data in (old_data, new_data)):
            return FileDiffDetail(path, status, True, old_size=old_size, new_size=new_size)

        old_text = _decode(old_data) if old_data is not None else ''
        new_text = _decode(new_data) if new_data is not None else ''
        unified = ''.join(difflib.unified_diff(
            old_text.splitlines(keepends=True),
            new_text.splitlines(keepends=True),
            fromfile=f'a/{path}',
            tofile=f'b/{path}',
            n=DIFF_CONTEXT_LINES,
        ))
        return FileDiffDetail(
            path=path,
            status=status,
            is_binary=False,
            unified_diff=unified,
            old_content=old_text if old_data is not None else None,
            new_content=new_text if new_data is not None else None,
            old_size=old_size,
            new_size=new_size,
        )


__all__ = ['AssetDiffService', 'list_relative_files', 'is_binary']
