# Path: gib_validator/models/__init__.py
"""
GIB Validator Models Module

Data structures for validation, transformation and asset versioning.
"""

from gib_validator.models.document_types import (
    DocumentType,
    SchemaValidationType,
    SchematronValidationType,
    TransformType,
)
from gib_validator.models.profile import (
    MatchMode,
    SuppressionRule,
    XsdOverrideRule,
    SchematronCustomRule,
    Profile,
    ResolvedProfile,
)
from gib_validator.models.validation import (
    RuleError,
    SuppressionInfo,
    ValidationResult,
    ValidationResponse,
)
from gib_validator.models.transform import TransformRequest, TransformResult
from gib_validator.models.reload import AssetKind, ReloadStatus, ReloadResult, ReloadReport
from gib_validator.models.versioning import (
    PackageDefinition,
    PackageSyncResult,
    FileChangeStatus,
    FileDiffSummary,
    FileDiffDetail,
    SuppressionWarning,
    WarningSeverity,
    VersionStatus,
    FilesSummary,
    AssetVersion,
    SyncPreview,
)

__all__ = [
    'DocumentType',
    'SchemaValidationType',
    'SchematronValidationType',
    'TransformType',
    'MatchMode',
    'SuppressionRule',
    'XsdOverrideRule',
    'SchematronCustomRule',
    'Profile',
    'ResolvedProfile',
    'RuleError',
    'SuppressionInfo',
    'ValidationResult',
    'ValidationResponse',
    'TransformRequest',
    'TransformResult',
    'AssetKind',
    'ReloadStatus',
    'ReloadResult',
    'ReloadReport',
    'PackageDefinition',
    'PackageSyncResult',
    'FileChangeStatus',
    'FileDiffSummary',
    'FileDiffDetail',
    'SuppressionWarning',
    'WarningSeverity',
    'VersionStatus',
    'FilesSummary',
    'AssetVersion',
    'SyncPreview',
]
