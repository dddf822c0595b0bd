# Path: gib_validator/sync/versioning.py
"""
Asset Versioning Service

Staged sync with explicit operator approval.

Architecture:
- preview: download into a fresh slot, move it to staging/<packageId> on
  success (superseding any staged version), diff against live, analyse
  suppression impact, record a PENDING version
- approve: snapshot live, swap every target directory for its staged copy
  (rolled back if a swap fails), mark the version APPLIED, then reload the
  affected asset kinds
- reject: discard staging, mark the version REJECTED
- One operation per package at a time (non-blocking lock per package)
- Terminal transitions are compare-and-swap in the history database

Per package: idle -> staging -> awaiting approval -> applied | rejected -> idle
"""

import asyncio
import shutil
import threading
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional

from gib_validator.core.data_paths import AssetPaths
from gib_validator.core.logger import get_logger
from gib_validator.exceptions import (
    AssetNotFoundError,
    AssetPathError,
    SyncError,
    SyncInProgressError,
    VersionStateError,
)
from gib_validator.history.database import HistoryDatabase
from gib_validator.models.reload import AssetKind, ReloadReport, ReloadStatus
from gib_validator.models.versioning import (
    AssetVersion,
    FileDiffDetail,
    FileDiffSummary,
    FilesSummary,
    PackageDefinition,
    PackageSyncResult,
    SyncPreview,
    VersionStatus,
)
from gib_validator.sync.diff import AssetDiffService
from gib_validator.sync.impact import SuppressionImpactAnalyzer
from gib_validator.sync.package_sync import PackageSyncService
from gib_validator.sync.packages import get_package, package_ids
from gib_validator.constants import (
    LOG_INPUT,
    LOG_OUTPUT,
    LOG_PROCESS,
    SNAPSHOT_AFTER,
    SNAPSHOT_BEFORE,
)

logger = get_logger(__name__, 'sync')

ReloadCallback = Callable[[Iterable[AssetKind]], object]

VERSION_TIMESTAMP_FORMAT = '%Y-%m-%d-%H-%M-%S'


class AssetVersioningService:
    """
    Example:
        versioning = AssetVersioningService(paths, history, sync_service, diff, impact, orchestrator.reload)
        versioning.restore_pending()
        previews = asyncio.run(versioning.preview('efatura'))
        version = versioning.approve('efatura')
    """

    def __init__(
        self,
        paths: AssetPaths,
        history: HistoryDatabase,
        sync_service: PackageSyncService,
        diff_service: AssetDiffService,
        impact_analyzer: SuppressionImpactAnalyzer,
        reload_callback: Optional[ReloadCallback] = None,
        sync_enabled: bool = True,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.paths = paths
        self.history = history
        self.sync_service = sync_service
        self.diff_service = diff_service
        self.impact_analyzer = impact_analyzer
        self.reload_callback = reload_callback
        self.sync_enabled = sync_enabled
        self._clock = clock
        self._locks: Dict[str, threading.Lock] = {package_id: threading.Lock() for package_id in package_ids()}
        self._awaiting: Dict[str, SyncPreview] = {}

    # ------------------------------------------------------------------
    # startup
    # ------------------------------------------------------------------

    def restore_pending(self) -> List[SyncPreview]:
        """
        Bring PENDING versions back after a restart.

        The newest PENDING version of a package whose staging directory still
        exists awaits approval again; every other PENDING version is rejected.
        """
        restored = []
        for version in self.history.pending_versions():
            staging = self.paths.staging_dir(version.package_id)
            if version.package_id in self._awaiting or not staging.is_dir():
                self.history.transition(version.id, VersionStatus.REJECTED, self._clock())
                logger.warning(f"Stale pending version {version.id} marked REJECTED")
                continue
            preview = SyncPreview(
                package_id=version.package_id,
                version=version,
                file_diffs=self.history.get_file_diffs(version.id),
                warnings=self.history.get_warnings(version.id),
            )
            self._awaiting[version.package_id] = preview
            restored.append(preview)
            logger.info(f"{LOG_OUTPUT} Restored pending version {version.id}")
        return restored

    def live_assets_empty(self) -> bool:
        """True when no package target directory holds a file (first install)."""
        for package_id in package_ids():
            for target in get_package(package_id).target_dirs:
                directory = self.paths.root / target.strip('/')
                if directory.is_dir() and any(path.is_file() for path in directory.rglob('*')):
                    return False
        return True

    def initial_sync(self) -> List[AssetVersion]:
        """
        Stage and apply every package.

        Used on a first install, where there is nothing live to review
        against. A package that fails to stage or apply is logged and skipped.
        """
        logger.info(f"{LOG_INPUT} Initial sync of all packages")
        applied = []
        for preview in asyncio.run(self.preview()):
            if not preview.success:
                logger.warning(f"Initial sync: package {preview.package_id} failed: {preview.error}")
                continue
            try:
                applied.append(self.approve(preview.package_id))
            except (SyncError, VersionStateError) as e:
                logger.error(f"Initial sync: package {preview.package_id} not applied: {e}")
        logger.info(f"{LOG_OUTPUT} Initial sync applied {len(applied)} packages")
        return applied

    # ------------------------------------------------------------------
    # preview
    # ------------------------------------------------------------------

    async def preview(self, package_id: Optional[str] = None) -> List[SyncPreview]:
        """
        Stage one package (or all) and produce previews.

        Each package downloads into a fresh staging slot. A version already
        awaiting approval is superseded only once the new download succeeds.

        Raises:
            SyncError: Sync disabled, or unknown package
            SyncInProgressError: The single requested package is busy
        """
        if not self.sync_enabled:
            raise SyncError("Package sync is disabled (GIB_SYNC_ENABLED=false)")

        requested = [package_id] if package_id else package_ids()
        logger.info(f"{LOG_INPUT} Sync preview for {', '.join(requested)}")
        previews: Dict[str, SyncPreview] = {}
        locked: List[str] = []
        try:
            for pid in requested:
                error = self._claim(pid, single=package_id is not None)
                if error:
                    previews[pid] = SyncPreview(pid, error=error)
                    continue
                locked.append(pid)
                self._reset_slot(pid)

            if locked:
                started = time.time()
                results = await self.sync_service.sync(locked, self.paths.staging_slot)
                for result in results:
                    previews[result.package_id] = await asyncio.to_thread(self._stage_result, result, started)
        finally:
            for pid in locked:
                self._locks[pid].release()

        ordered = [previews[pid] for pid in requested if pid in previews]
        logger.info(
            f"{LOG_OUTPUT} Preview: {sum(1 for p in ordered if p.success)}/{len(ordered)} packages staged"
        )
        return ordered

    def _claim(self, package_id: str, single: bool) -> Optional[str]:
        """Take the package lock; returns an error text (or raises when single) if busy."""
        try:
            package = get_package(package_id)
        except SyncError as e:
            if single:
                raise
            return str(e)
        if not self._locks[package.id].acquire(blocking=False):
            if single:
                raise SyncInProgressError(f"Sync already in progress for package '{package_id}'")
            return f"Sync already in progress for package '{package_id}'"
        return None

    def _reset_slot(self, package_id: str) -> None:
        slot = self.paths.staging_slot(package_id)
        if slot.exists():
            shutil.rmtree(slot)
        slot.mkdir(parents=True, exist_ok=True)

    def _supersede(self, package_id: str) -> None:
        superseded = self._awaiting.pop(package_id, None)
        if superseded is not None:
            self.history.transition(superseded.version.id, VersionStatus.REJECTED, self._clock())
            logger.info(f"{LOG_PROCESS} Pending version {superseded.version.id} superseded and marked REJECTED")

    def _stage_result(self, result: PackageSyncResult, started: float) -> SyncPreview:
        slot = self.paths.staging_slot(result.package_id)
        if not result.success:
            shutil.rmtree(slot, ignore_errors=True)
            if result.package_id in self._awaiting:
                logger.warning(
                    f"Preview of {result.package_id} failed; "
                    f"{self._awaiting[result.package_id].version.id} still awaits approval"
                )
            return SyncPreview(result.package_id, error=result.error)

        package = get_package(result.package_id)
        self._supersede(package.id)
        staging = self.paths.staging_dir(package.id)
        if staging.exists():
            shutil.rmtree(staging)
        slot.rename(staging)

        diffs = self.diff_service.compute_directory_diff(self.paths.root, staging, package.target_dirs)
        warnings = self.impact_analyzer.analyze(diffs, self.paths.root, staging)
        version = AssetVersion(
            id=self._new_version_id(package.id),
            package_id=package.id,
            display_name=package.display_name,
            timestamp=self._clock(),
            status=VersionStatus.PENDING,
            files_summary=FilesSummary.from_diffs(diffs),
            duration_ms=int((time.time() - started) * 1000),
        )
        self.history.add_version(version, diffs, warnings)
        preview = SyncPreview(package.id, version, diffs, warnings)
        self._awaiting[package.id] = preview
        logger.info(
            f"{LOG_PROCESS} {version.id}: +{version.files_summary.added} -{version.files_summary.removed} "
            f"~{version.files_summary.modified} ={version.files_summary.unchanged}, {len(warnings)} warnings"
        )
        return preview

    def _new_version_id(self, package_id: str) -> str:
        base = f"{self._clock().strftime(VERSION_TIMESTAMP_FORMAT)}-{package_id}"
        candidate, counter = base, 1
        while self.history.get_version(candidate) is not None:
            counter += 1
            candidate = f"{base}-{counter}"
        return candidate

    # ------------------------------------------------------------------
    # pending / approve / reject
    # ------------------------------------------------------------------

    def pending(self) -> List[SyncPreview]:
        return [self._awaiting[pid] for pid in sorted(self._awaiting)]

    def approve(self, package_id: str) -> AssetVersion:
        """
        Promote the staged version of a package.

        Re-approving an already applied version returns it unchanged. The
        returned version carries the report of the reload that followed.

        Raises:
            SyncInProgressError: A preview for the package is running
            VersionStateError: Nothing awaits approval, or the latest version was rejected
            SyncError: Promotion failed; live assets were rolled back and the
                version still awaits approval
        """
        package = get_package(package_id)
        lock = self._locks[package.id]
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(f"Sync already in progress for package '{package_id}'")
        try:
            preview = self._awaiting.get(package.id)
            if preview is None:
                latest = self._latest_version(package.id)
                if latest is not None and latest.status is VersionStatus.APPLIED:
                    logger.info(f"Version {latest.id} already applied")
                    return latest
                raise VersionStateError(self._not_awaiting_message(package.id, latest, 'approve'))

            version = preview.version
            logger.info(f"{LOG_INPUT} Approving {version.id}")
            self._promote(package, version)
            applied_at = self._clock()
            if not self.history.transition(version.id, VersionStatus.APPLIED, applied_at):
                raise VersionStateError(f"Version {version.id} is no longer PENDING")
            del self._awaiting[package.id]
            shutil.rmtree(self.paths.staging_dir(package.id), ignore_errors=True)
            applied = version.as_applied(applied_at)
        finally:
            lock.release()

        if self.reload_callback is not None:
            report = self.reload_callback(package.asset_kinds)
            if isinstance(report, ReloadReport):
                applied = replace(applied, reload_report=report)
                if report.status is not ReloadStatus.SUCCESS:
                    logger.warning(f"Reload after applying {applied.id} ended {report.status.value}")
        logger.info(f"{LOG_OUTPUT} Applied {applied.id}")
        return applied

    def reject(self, package_id: str) -> AssetVersion:
        """
        Discard the staged version of a package.

        Raises:
            SyncInProgressError: A preview for the package is running
            VersionStateError: Nothing awaits approval, or the latest version was applied
        """
        package = get_package(package_id)
        lock = self._locks[package.id]
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(f"Sync already in progress for package '{package_id}'")
        try:
            preview = self._awaiting.get(package.id)
            if preview is None:
                latest = self._latest_version(package.id)
                if latest is not None and latest.status is VersionStatus.REJECTED:
                    return latest
                raise VersionStateError(self._not_awaiting_message(package.id, latest, 'reject'))

            version = preview.version
            rejected_at = self._clock()
            if not self.history.transition(version.id, VersionStatus.REJECTED, rejected_at):
                raise VersionStateError(f"Version {version.id} is no longer PENDING")
            del self._awaiting[package.id]
            shutil.rmtree(self.paths.staging_dir(package.id), ignore_errors=True)
        finally:
            lock.release()

        logger.info(f"{LOG_OUTPUT} Rejected {version.id}")
        return version.as_rejected(rejected_at)

    def _latest_version(self, package_id: str) -> Optional[AssetVersion]:
        versions = self.history.list_versions(package_id=package_id)
        return versions[0] if versions else None

    @staticmethod
    def _not_awaiting_message(package_id: str, latest: Optional[AssetVersion], action: str) -> str:
        if latest is None:
            return f"Cannot {action}: package '{package_id}' has no staged version"
        return f"Cannot {action}: latest version {latest.id} of '{package_id}' is {latest.status.value}"

    def _promote(self, package: PackageDefinition, version: AssetVersion) -> None:
        """
        Replace each live target directory with its staged copy.

        Every staged copy is duplicated next to its live directory before any
        live directory moves. The swaps are renames; if one fails, the
        directories already swapped are moved back and SyncError is raised.
        Leftovers of an interrupted earlier attempt are cleared first.
        """
        live_root = self.paths.root
        staging = self.paths.staging_dir(package.id)
        snapshot = self.paths.snapshot_dir(version.id)

        targets = []
        for target in package.target_dirs:
            relative = target.strip('/')
            live_dir = live_root / relative
            incoming = live_dir.with_name(f"{live_dir.name}.incoming-{version.id}")
            outgoing = live_dir.with_name(f"{live_dir.name}.outgoing-{version.id}")
            if outgoing.exists():
                if live_dir.exists():
                    shutil.rmtree(outgoing)
                else:
                    outgoing.rename(live_dir)
                    logger.warning(f"Restored {relative} left behind by an interrupted approval")
            if incoming.exists():
                shutil.rmtree(incoming)
            targets.append((relative, live_dir, staging / relative, incoming, outgoing))

        if snapshot.exists():
            shutil.rmtree(snapshot)
        for relative, live_dir, staged_dir, incoming, _ in targets:
            if live_dir.is_dir():
                shutil.copytree(live_dir, snapshot / SNAPSHOT_BEFORE / relative)
            if staged_dir.is_dir():
                shutil.copytree(staged_dir, snapshot / SNAPSHOT_AFTER / relative)
                live_dir.parent.mkdir(parents=True, exist_ok=True)
                shutil.copytree(staged_dir, incoming)

        swapped = []
        try:
            for relative, live_dir, _, incoming, outgoing in targets:
                swapped.append((live_dir, outgoing, live_dir.exists()))
                if live_dir.exists():
                    live_dir.rename(outgoing)
                if incoming.exists():
                    incoming.rename(live_dir)
        except OSError as e:
            for live_dir, outgoing, existed in reversed(swapped):
                if live_dir.exists() and (outgoing.exists() or not existed):
                    shutil.rmtree(live_dir)
                if outgoing.exists():
                    outgoing.rename(live_dir)
            for _, _, _, incoming, _ in targets:
                shutil.rmtree(incoming, ignore_errors=True)
            logger.error(f"Promotion of {version.id} failed, live assets restored: {e}")
            raise SyncError(f"Could not apply {version.id}: {e}. Live assets were left unchanged.") from e

        for relative, _, _, _, outgoing in targets:
            if outgoing.exists():
                shutil.rmtree(outgoing)
            logger.debug(f"{LOG_PROCESS} Promoted {relative}")

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------

    def list_versions(self, package_id: Optional[str] = None) -> List[AssetVersion]:
        return self.history.list_versions(package_id=package_id)

    def get_version(self, version_id: str) -> AssetVersion:
        version = self.history.get_version(version_id)
        if version is None:
            raise AssetNotFoundError(f"Version not found: {version_id}")
        return version

    def version_diff(self, version_id: str) -> List[FileDiffSummary]:
        self.get_version(version_id)
        return self.history.get_file_diffs(version_id)

    def version_file_diff(self, version_id: str, path: str) -> FileDiffDetail:
        """
        Content diff of one file of a version.

        PENDING versions compare live with staging; APPLIED versions compare
        their before/after snapshots.

        Raises:
            AssetNotFoundError: Unknown version, or rejected (content discarded)
            AssetPathError: Path escapes the asset tree
        """
        version = self.get_version(version_id)
        parts = PurePosixPath(path).parts
        if not parts or path.startswith('/') or '..' in parts:
            raise AssetPathError(f"Path traversal blocked: {path}")

        if version.status is VersionStatus.PENDING:
            old_root, new_root = self.paths.root, self.paths.staging_dir(version.package_id)
        elif version.status is VersionStatus.APPLIED:
            snapshot = self.paths.snapshot_dir(version.id)
            old_root, new_root = snapshot / SNAPSHOT_BEFORE, snapshot / SNAPSHOT_AFTER
        else:
            raise AssetNotFoundError(f"Version {version_id} was rejected; its staged content was discarded")

        try:
            return self.diff_service.file_detail(path, old_root, new_root)
        except FileNotFoundError as e:
            raise AssetNotFoundError(f"File not part of version {version_id}: {path}") from e


__all__ = ['AssetVersioningService', 'VERSION_TIMESTAMP_FORMAT']
