# Path: gib_validator/history/database.py
"""
Version History Database

Engine, sessions and queries over the asset version history.

Architecture:
- One engine and session factory per HistoryDatabase (SQLite by default)
- session_scope() commits on success and rolls back on error
- Terminal transitions are compare-and-swap: UPDATE ... WHERE status='PENDING'
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, List, Optional, Sequence

from sqlalchemy import create_engine, func, update
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from gib_validator.core.logger import get_logger
from gib_validator.history.models import (
    AssetVersionFileRecord,
    AssetVersionRecord,
    AssetVersionWarningRecord,
    Base,
)
from gib_validator.models.versioning import (
    AssetVersion,
    FileDiffSummary,
    SuppressionWarning,
    VersionStatus,
)
from gib_validator.constants import LOG_OUTPUT

logger = get_logger(__name__, 'sync')


class HistoryDatabase:
    """
    Example:
        db = HistoryDatabase('sqlite:///assets/history/versions.db')
        db.add_version(version, diffs, warnings)
        applied = db.transition(version.id, VersionStatus.APPLIED)
    """

    def __init__(self, database_url: str):
        url = make_url(database_url)
        connect_args = {}
        if url.get_backend_name() == 'sqlite':
            connect_args['check_same_thread'] = False
            if url.database and url.database != ':memory:':
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(database_url, connect_args=connect_args, echo=False)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)
        logger.info(f"History database ready ({url.get_backend_name()})")

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def add_version(
        self,
        version: AssetVersion,
        diffs: Sequence[FileDiffSummary] = (),
        warnings: Sequence[SuppressionWarning] = ()
    ) -> None:
        with self.session_scope() as session:
            record = AssetVersionRecord.from_domain(version)
            record.sequence = (session.query(func.max(AssetVersionRecord.sequence)).scalar() or 0) + 1
            record.files = [
                AssetVersionFileRecord(path=d.path, status=d.status.value, old_size=d.old_size, new_size=d.new_size)
                for d in diffs
            ]
            record.warnings = [
                AssetVersionWarningRecord(
                    rule_id=w.rule_id, profile_name=w.profile_name, pattern=w.pattern,
                    severity=w.severity.value, message=w.message,
                )
                for w in warnings
            ]
            session.add(record)
        logger.info(f"{LOG_OUTPUT} Version recorded: {version.id} ({version.status.value})")

    def transition(self, version_id: str, status: VersionStatus, when: Optional[datetime] = None) -> bool:
        """
        Move a PENDING version to a terminal status.

        Returns:
            True if this call performed the transition, False if the version
            was not PENDING (or does not exist)
        """
        when = when or datetime.now()
        values = {'status': status.value}
        if status is VersionStatus.APPLIED:
            values['applied_at'] = when
        elif status is VersionStatus.REJECTED:
            values['rejected_at'] = when
        with self.session_scope() as session:
            result = session.execute(
                update(AssetVersionRecord)
                .where(AssetVersionRecord.id == version_id)
                .where(AssetVersionRecord.status == VersionStatus.PENDING.value)
                .values(**values)
            )
            changed = result.rowcount == 1
        if changed:
            logger.info(f"{LOG_OUTPUT} Version {version_id} -> {status.value}")
        return changed

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_version(self, version_id: str) -> Optional[AssetVersion]:
        with self.session_scope() as session:
            record = session.get(AssetVersionRecord, version_id)
            return record.to_domain() if record else None

    def list_versions(
        self,
        package_id: Optional[str] = None,
        status: Optional[VersionStatus] = None
    ) -> List[AssetVersion]:
        """Newest first."""
        with self.session_scope() as session:
            query = session.query(AssetVersionRecord)
            if package_id:
                query = query.filter(AssetVersionRecord.package_id == package_id)
            if status:
                query = query.filter(AssetVersionRecord.status == status.value)
            records = query.order_by(AssetVersionRecord.sequence.desc()).all()
            return [record.to_domain() for record in records]

    def pending_versions(self) -> List[AssetVersion]:
        return self.list_versions(status=VersionStatus.PENDING)

    def get_file_diffs(self, version_id: str) -> List[FileDiffSummary]:
        with self.session_scope() as session:
            records = (
                session.query(AssetVersionFileRecord)
                .filter(AssetVersionFileRecord.version_id == version_id)
                .order_by(AssetVersionFileRecord.path)
                .all()
            )
            return [record.to_domain() for record in records]

    def get_warnings(self, version_id: str) -> List[SuppressionWarning]:
        with self.session_scope() as session:
            records = (
                session.query(AssetVersionWarningRecord)
                .filter(AssetVersionWarningRecord.version_id == version_id)
                .order_by(AssetVersionWarningRecord.id)
                .all()
            )
            return [record.to_domain() for record in records]


__all__ = ['HistoryDatabase']
