# Path: gib_validator/history/models.py
"""
Version History Models

SQLAlchemy tables for the append-only asset version history.

Architecture:
- asset_versions: one row per sync attempt and its disposition
- asset_version_files: per-file diff summary captured at preview time
- asset_version_warnings: suppression warnings captured at preview time
- Terminal rows are never updated again (enforced by the CAS update in database.py)
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from gib_validator.models.versioning import (
    AssetVersion,
    FileChangeStatus,
    FileDiffSummary,
    FilesSummary,
    SuppressionWarning,
    VersionStatus,
    WarningSeverity,
)

Base = declarative_base()

MAX_VERSION_ID_LENGTH = 100
MAX_PACKAGE_ID_LENGTH = 50
MAX_STATUS_LENGTH = 20


class AssetVersionRecord(Base):
    __tablename__ = 'asset_versions'

    id = Column(String(MAX_VERSION_ID_LENGTH), primary_key=True, comment="YYYY-MM-DD-HH-MM-SS-<packageId>")
    package_id = Column(String(MAX_PACKAGE_ID_LENGTH), nullable=False)
    display_name = Column(String(200), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    status = Column(String(MAX_STATUS_LENGTH), nullable=False, comment="PENDING, APPLIED or REJECTED")
    added = Column(Integer, nullable=False, default=0)
    removed = Column(Integer, nullable=False, default=0)
    modified = Column(Integer, nullable=False, default=0)
    unchanged = Column(Integer, nullable=False, default=0)
    applied_at = Column(DateTime)
    rejected_at = Column(DateTime)
    duration_ms = Column(Integer, nullable=False, default=0)
    sequence = Column(Integer, nullable=False, default=0, comment="Insertion order, newest highest")
    created_at = Column(DateTime, server_default=func.now())

    files = relationship(
        'AssetVersionFileRecord',
        back_populates='version',
        cascade='all, delete-orphan',
        order_by='AssetVersionFileRecord.path',
    )
    warnings = relationship(
        'AssetVersionWarningRecord',
        back_populates='version',
        cascade='all, delete-orphan',
        order_by='AssetVersionWarningRecord.id',
    )

    __table_args__ = (
        Index('idx_asset_versions_package_status', 'package_id', 'status'),
        Index('idx_asset_versions_timestamp', 'timestamp'),
        Index('idx_asset_versions_sequence', 'sequence'),
    )

    @classmethod
    def from_domain(cls, version: AssetVersion) -> 'AssetVersionRecord':
        summary = version.files_summary
        return cls(
            id=version.id,
            package_id=version.package_id,
            display_name=version.display_name,
            timestamp=version.timestamp,
            status=version.status.value,
            added=summary.added,
            removed=summary.removed,
            modified=summary.modified,
            unchanged=summary.unchanged,
            applied_at=version.applied_at,
            rejected_at=version.rejected_at,
            duration_ms=version.duration_ms,
        )

    def to_domain(self) -> AssetVersion:
        return AssetVersion(
            id=self.id,
            package_id=self.package_id,
            display_name=self.display_name,
            timestamp=self.timestamp,
            status=VersionStatus(self.status),
            files_summary=FilesSummary(self.added, self.removed, self.modified, self.unchanged),
            applied_at=self.applied_at,
            rejected_at=self.rejected_at,
            duration_ms=self.duration_ms or 0,
        )

    def __repr__(self) -> str:
        return f"<AssetVersionRecord(id={self.id}, status={self.status})>"


class AssetVersionFileRecord(Base):
    __tablename__ = 'asset_version_files'

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(String(MAX_VERSION_ID_LENGTH), ForeignKey('asset_versions.id'), nullable=False, index=True)
    path = Column(Text, nullable=False)
    status = Column(String(MAX_STATUS_LENGTH), nullable=False)
    old_size = Column(Integer, nullable=False, default=-1)
    new_size = Column(Integer, nullable=False, default=-1)

    version = relationship('AssetVersionRecord', back_populates='files')

    def to_domain(self) -> FileDiffSummary:
        return FileDiffSummary(self.path, FileChangeStatus(self.status), self.old_size, self.new_size)


class AssetVersionWarningRecord(Base):
    __tablename__ = 'asset_version_warnings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(String(MAX_VERSION_ID_LENGTH), ForeignKey('asset_versions.id'), nullable=False, index=True)
    rule_id = Column(Text, nullable=False)
    profile_name = Column(String(100), nullable=False)
    pattern = Column(Text, nullable=False)
    severity = Column(String(MAX_STATUS_LENGTH), nullable=False)
    message = Column(Text, nullable=False)

    version = relationship('AssetVersionRecord', back_populates='warnings')

    def to_domain(self) -> SuppressionWarning:
        return SuppressionWarning(
            self.rule_id, self.profile_name, self.pattern, WarningSeverity(self.severity), self.message
        )


__all__ = ['Base', 'AssetVersionRecord', 'AssetVersionFileRecord', 'AssetVersionWarningRecord']
