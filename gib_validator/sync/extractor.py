# Path: gib_validator/sync/extractor.py
"""
Package Extractor

Copies the mapped members of a package archive into a target tree.

Architecture:
- Each FileMapping glob is compiled to an anchored regex over archive paths
- The first mapping that matches a member decides its destination
- Below the pattern's last literal directory the member's sub-path is kept;
  patterns without a literal directory keep only the file name
- Every target directory is emptied once before its first file is written
- Members that are too deep or would escape the target root are skipped
"""

import re
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import ExtractionError
from gib_validator.models.versioning import FileMapping
from gib_validator.constants import LOG_INPUT, LOG_OUTPUT, LOG_PROCESS, MAX_EXTRACTION_DEPTH

logger = get_logger(__name__, 'sync')


def glob_to_regex(pattern: str) -> Pattern:
    """
    '**/' -> any number of directories (including none), '*' -> within one segment.
    """
    parts = []
    index = 0
    while index < len(pattern):
        if pattern.startswith('**/', index):
            parts.append('(?:.*/)?')
            index += 3
        elif pattern[index] == '*':
            parts.append('[^/]*')
            index += 1
        elif pattern[index] == '?':
            parts.append('[^/]')
            index += 1
        else:
            parts.append(re.escape(pattern[index]))
            index += 1
    return re.compile('^' + ''.join(parts) + '$')


def anchor_directory(pattern: str) -> Optional[str]:
    """Last directory segment of the pattern that contains no wildcard."""
    directories = pattern.split('/')[:-1]
    for segment in reversed(directories):
        if segment and '*' not in segment and '?' not in segment:
            return segment
    return None


def target_subpath(member: str, anchor: Optional[str]) -> str:
    """Path of member below the anchor directory, or its file name."""
    parts = PurePosixPath(member).parts
    if anchor:
        for index in range(len(parts) - 2, -1, -1):
            if parts[index] == anchor:
                return '/'.join(parts[index + 1:])
    return parts[-1]


class _CompiledMapping:

    def __init__(self, mapping: FileMapping):
        self.mapping = mapping
        self.regex = glob_to_regex(mapping.zip_path_pattern)
        self.anchor = anchor_directory(mapping.zip_path_pattern)
        self.target_dir = mapping.target_dir.strip('/')


class PackageExtractor:
    """
    Example:
        extractor = PackageExtractor()
        written = extractor.extract(Path('efatura.zip'), package.file_mappings, staging_dir)
    """

    def __init__(self, max_depth: int = MAX_EXTRACTION_DEPTH):
        self.max_depth = max_depth

    def extract(self, archive_path: Path, mappings: Sequence[FileMapping], target_root: Path) -> List[str]:
        """
        Extract mapped members below target_root.

        Returns:
            Sorted target-root-relative paths written

        Raises:
            ExtractionError: Archive cannot be read
        """
        logger.info(f"{LOG_INPUT} Extracting {archive_path.name} ({len(mappings)} mappings)")
        compiled = [_CompiledMapping(mapping) for mapping in mappings]
        target_root = Path(target_root).resolve()
        cleaned: set = set()
        written: Dict[str, str] = {}

        try:
            with zipfile.ZipFile(archive_path) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    member = info.filename.replace('\\', '/')
                    destination = self._destination(member, compiled)
                    if destination is None:
                        continue
                    target_dir, relative = destination
                    if not self._safe(member, relative, target_root):
                        continue

                    if target_dir not in cleaned:
                        self._clean(target_root / target_dir)
                        cleaned.add(target_dir)

                    output = target_root / relative
                    output.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as source, open(output, 'wb') as sink:
                        shutil.copyfileobj(source, sink)
                    if relative in written:
                        logger.warning(f"{relative} written twice ({written[relative]} and {member})")
                    written[relative] = member
                    logger.debug(f"{LOG_PROCESS} {member} -> {relative}")
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise ExtractionError(f"Cannot read archive {archive_path.name}: {e}") from e

        logger.info(f"{LOG_OUTPUT} Extracted {len(written)} files from {archive_path.name}")
        return sorted(written)

    @staticmethod
    def _destination(member: str, compiled: Sequence[_CompiledMapping]) -> Optional[Tuple[str, str]]:
        for entry in compiled:
            if entry.regex.match(member):
                relative = f"{entry.target_dir}/{target_subpath(member, entry.anchor)}"
                return entry.target_dir, relative
        return None

    def _safe(self, member: str, relative: str, target_root: Path) -> bool:
        depth = len(PurePosixPath(member).parts)
        if depth > self.max_depth:
            logger.error(f"Archive member too deep, skipped: {member} (depth={depth})")
            return False
        try:
            (target_root / relative).resolve().relative_to(target_root)
        except ValueError:
            logger.error(f"Archive member escapes target directory, skipped: {member}")
            return False
        return True

    @staticmethod
    def _clean(directory: Path) -> None:
        if directory.is_dir():
            shutil.rmtree(directory)
            logger.debug(f"{LOG_PROCESS} Cleaned {directory}")


__all__ = ['PackageExtractor', 'glob_to_regex', 'anchor_directory', 'target_subpath']
