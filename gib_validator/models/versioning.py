# Path: gib_validator/models/versioning.py
"""
Asset Versioning Models

Records for GIB package sync, staging previews and version history.

Architecture:
- PackageDefinition / FileMapping: where a package comes from and where its files go
- PackageSyncResult: per-package download/extract outcome
- FileDiffSummary / FileDiffDetail: staged-vs-live comparison
- SuppressionWarning: suppression rules a staged change may break
- AssetVersion / SyncPreview: the approve/reject lifecycle
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from gib_validator.models.reload import AssetKind, ReloadReport


# ==============================================================================
# PACKAGE DEFINITIONS
# ==============================================================================

@dataclass(frozen=True)
class FileMapping:
    """
    Attributes:
        zip_path_pattern: Glob matched against archive-relative paths ('**/' spans directories)
        target_dir: Asset-relative directory the matching files land in
    """
    zip_path_pattern: str
    target_dir: str


@dataclass(frozen=True)
class PackageDefinition:
    """Official GIB asset package."""
    id: str
    display_name: str
    download_url: str
    file_mappings: Tuple[FileMapping, ...]
    description: str = ''
    asset_kinds: Tuple[AssetKind, ...] = ()

    @property
    def target_dirs(self) -> List[str]:
        seen: List[str] = []
        for mapping in self.file_mappings:
            if mapping.target_dir not in seen:
                seen.append(mapping.target_dir)
        return seen


@dataclass
class PackageSyncResult:
    """
    Result of downloading and extracting one package.

    Attributes:
        package_id: Package identifier
        display_name: Operator-facing name
        success: Whether download and extraction succeeded
        files_extracted: Number of mapped files written
        extracted_files: Asset-relative paths written
        duration_ms: Elapsed time
        error: Failure reason
    """
    package_id: str
    display_name: str
    success: bool
    files_extracted: int = 0
    extracted_files: List[str] = field(default_factory=list)
    duration_ms: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, package_id: str, display_name: str, duration_ms: int, error: str) -> 'PackageSyncResult':
        return cls(package_id, display_name, False, duration_ms=duration_ms, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'packageId': self.package_id,
            'displayName': self.display_name,
            'success': self.success,
            'filesExtracted': self.files_extracted,
            'extractedFiles': list(self.extracted_files),
            'durationMs': self.duration_ms,
            'error': self.error,
        }


# ==============================================================================
# FILE DIFFS
# ==============================================================================

class FileChangeStatus(Enum):
    ADDED = 'ADDED'
    REMOVED = 'REMOVED'
    MODIFIED = 'MODIFIED'
    UNCHANGED = 'UNCHANGED'


@dataclass(frozen=True)
class FileDiffSummary:
    """Sizes are -1 on the side where the file is absent."""
    path: str
    status: FileChangeStatus
    old_size: int = -1
    new_size: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'status': self.status.value,
            'oldSize': self.old_size,
            'newSize': self.new_size,
        }


@dataclass(frozen=True)
class FileDiffDetail:
    """
    Content-level diff for one file.

    Text files carry a unified diff plus both contents; binary files only
    carry status and sizes.
    """
    path: str
    status: FileChangeStatus
    is_binary: bool = False
    unified_diff: Optional[str] = None
    old_content: Optional[str] = None
    new_content: Optional[str] = None
    old_size: int = -1
    new_size: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'status': self.status.value,
            'isBinary': self.is_binary,
            'unifiedDiff': self.unified_diff,
            'oldContent': self.old_content,
            'newContent': self.new_content,
            'oldSize': self.old_size,
            'newSize': self.new_size,
        }


# ==============================================================================
# SUPPRESSION WARNINGS
# ==============================================================================

class WarningSeverity(Enum):
    CRITICAL = 'CRITICAL'
    WARNING = 'WARNING'
    INFO = 'INFO'

    def demoted(self) -> 'WarningSeverity':
        if self is WarningSeverity.CRITICAL:
            return WarningSeverity.WARNING
        return WarningSeverity.INFO


@dataclass(frozen=True)
class SuppressionWarning:
    rule_id: str
    profile_name: str
    pattern: str
    severity: WarningSeverity
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ruleId': self.rule_id,
            'profileName': self.profile_name,
            'pattern': self.pattern,
            'severity': self.severity.value,
            'message': self.message,
        }


# ==============================================================================
# VERSIONS
# ==============================================================================

class VersionStatus(Enum):
    PENDING = 'PENDING'
    APPLIED = 'APPLIED'
    REJECTED = 'REJECTED'

    @property
    def is_terminal(self) -> bool:
        return self is not VersionStatus.PENDING


@dataclass(frozen=True)
class FilesSummary:
    added: int = 0
    removed: int = 0
    modified: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed + self.modified + self.unchanged

    @classmethod
    def from_diffs(cls, diffs: List[FileDiffSummary]) -> 'FilesSummary':
        counts = {status: 0 for status in FileChangeStatus}
        for diff in diffs:
            counts[diff.status] += 1
        return cls(
            added=counts[FileChangeStatus.ADDED],
            removed=counts[FileChangeStatus.REMOVED],
            modified=counts[FileChangeStatus.MODIFIED],
            unchanged=counts[FileChangeStatus.UNCHANGED],
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            'added': self.added,
            'removed': self.removed,
            'modified': self.modified,
            'unchanged': self.unchanged,
            'total': self.total,
        }


@dataclass(frozen=True)
class AssetVersion:
    """
    One sync attempt and its disposition.

    Created PENDING; moves exactly once to APPLIED or REJECTED.
    reload_report is only set on the value returned by approve: the reload
    that brought the promoted files into memory. It is not persisted.
    """
    id: str
    package_id: str
    display_name: str
    timestamp: datetime
    status: VersionStatus
    files_summary: FilesSummary
    applied_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    duration_ms: int = 0
    reload_report: Optional[ReloadReport] = field(default=None, compare=False)

    @classmethod
    def pending(cls, version_id: str, package_id: str, display_name: str,
                files_summary: FilesSummary, duration_ms: int) -> 'AssetVersion':
        return cls(version_id, package_id, display_name, datetime.now(),
                   VersionStatus.PENDING, files_summary, duration_ms=duration_ms)

    def as_applied(self, when: Optional[datetime] = None) -> 'AssetVersion':
        return replace(self, status=VersionStatus.APPLIED, applied_at=when or datetime.now())

    def as_rejected(self, when: Optional[datetime] = None) -> 'AssetVersion':
        return replace(self, status=VersionStatus.REJECTED, rejected_at=when or datetime.now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'packageId': self.package_id,
            'displayName': self.display_name,
            'timestamp': self.timestamp.isoformat(),
            'status': self.status.value,
            'filesSummary': self.files_summary.to_dict(),
            'appliedAt': self.applied_at.isoformat() if self.applied_at else None,
            'rejectedAt': self.rejected_at.isoformat() if self.rejected_at else None,
            'durationMs': self.duration_ms,
            'reload': self.reload_report.to_dict() if self.reload_report else None,
        }


@dataclass
class SyncPreview:
    """
    Staged package awaiting approval.

    A failed package yields a preview with version None and the failure
    in error; sibling packages are unaffected.
    """
    package_id: str
    version: Optional[AssetVersion] = None
    file_diffs: List[FileDiffSummary] = field(default_factory=list)
    warnings: List[SuppressionWarning] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'packageId': self.package_id,
            'version': self.version.to_dict() if self.version else None,
            'fileDiffs': [diff.to_dict() for diff in self.file_diffs],
            'warnings': [warning.to_dict() for warning in self.warnings],
            'error': self.error,
        }


__all__ = [
    'FileMapping',
    'PackageDefinition',
    'PackageSyncResult',
    'FileChangeStatus',
    'FileDiffSummary',
    'FileDiffDetail',
    'WarningSeverity',
    'SuppressionWarning',
    'VersionStatus',
    'FilesSummary',
    'AssetVersion',
    'SyncPreview',
]
