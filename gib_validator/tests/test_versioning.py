# Path: gib_validator/tests/test_versioning.py
"""Staged sync: preview, approval, rejection, restart recovery and version diffs."""

import asyncio
import shutil
from pathlib import Path

import pytest

from gib_validator.core.data_paths import AssetPaths
from gib_validator.exceptions import (
    AssetNotFoundError,
    AssetPathError,
    SyncError,
    SyncInProgressError,
    VersionStateError,
)
from gib_validator.history.database import HistoryDatabase
from gib_validator.models.profile import MatchMode, Profile, SuppressionRule
from gib_validator.models.reload import AssetKind
from gib_validator.models.versioning import FileChangeStatus, VersionStatus, WarningSeverity
from gib_validator.sync.diff import AssetDiffService
from gib_validator.sync.impact import SuppressionImpactAnalyzer
from gib_validator.sync.package_sync import PackageSyncService
from gib_validator.sync.versioning import AssetVersioningService

from gib_validator.tests.conftest import MAIN_SCHEMATRON, MAIN_SCHEMATRON_PATH

CODELIST_PATH = 'validator/ubl-tr-package/schematron/UBL-TR_Codelist.xml'

EFATURA_MEMBERS = {
    'e-FaturaPaketi/schematron/UBL-TR_Main_Schematron.xml': MAIN_SCHEMATRON,
    'e-FaturaPaketi/schematron/UBL-TR_Codelist.xml': b'<codes/>',
}


class Versioning:
    """AssetVersioningService wired to the temporary asset tree, plus its reload log."""

    def __init__(self, config, registry, archives, clock, sync_enabled=True):
        self.reloads = []
        self.paths = AssetPaths(config)
        self.paths.ensure_all_directories()
        self.history = HistoryDatabase(config.get('history_db_url'))
        self.service = AssetVersioningService(
            self.paths,
            self.history,
            PackageSyncService(archives.factory),
            AssetDiffService(),
            SuppressionImpactAnalyzer(registry),
            reload_callback=lambda kinds: self.reloads.append(list(kinds)),
            sync_enabled=sync_enabled,
            clock=clock,
        )

    def preview(self, package_id=None):
        return asyncio.run(self.service.preview(package_id))


@pytest.fixture
def versioning(config, registry, archives, clock):
    versioning = Versioning(config, registry, archives, clock)
    yield versioning
    versioning.history.dispose()


def test_preview_stages_package(versioning, archives, assets_root):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')

    assert preview.success
    assert preview.version.id == '2024-03-01-12-00-00-efatura'
    assert preview.version.status is VersionStatus.PENDING
    assert [(d.path, d.status) for d in preview.file_diffs] == [
        (CODELIST_PATH, FileChangeStatus.ADDED),
        (MAIN_SCHEMATRON_PATH, FileChangeStatus.UNCHANGED),
    ]
    summary = preview.version.files_summary
    assert (summary.added, summary.removed, summary.modified, summary.unchanged) == (1, 0, 0, 1)
    assert preview.warnings == []
    # live assets untouched until approval
    assert not (assets_root / CODELIST_PATH).exists()
    assert versioning.service.pending() == [preview]


def test_preview_again_supersedes_pending(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    [first] = versioning.preview('efatura')
    [second] = versioning.preview('efatura')

    assert second.version.id == '2024-03-01-12-00-00-efatura-2'
    assert (second.version.files_summary.added, second.version.files_summary.unchanged) == (1, 1)
    assert versioning.service.get_version(first.version.id).status is VersionStatus.REJECTED
    assert [p.version.id for p in versioning.service.pending()] == [second.version.id]


def test_approve_promotes_and_reloads(versioning, archives, assets_root, clock):
    archives.set('efatura', EFATURA_MEMBERS)
    versioning.preview('efatura')
    clock.advance(minutes=5)

    applied = versioning.service.approve('efatura')
    assert applied.status is VersionStatus.APPLIED
    assert applied.applied_at == clock.now
    assert (assets_root / CODELIST_PATH).read_bytes() == b'<codes/>'
    assert versioning.reloads == [[AssetKind.SCHEMATRON]]
    assert versioning.service.pending() == []
    assert not versioning.paths.staging_dir('efatura').exists()

    stored = versioning.service.get_version(applied.id)
    assert stored.status is VersionStatus.APPLIED


def test_approve_twice_returns_applied_version(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    versioning.preview('efatura')
    first = versioning.service.approve('efatura')
    again = versioning.service.approve('efatura')
    assert again.id == first.id
    assert again.status is VersionStatus.APPLIED
    assert len(versioning.reloads) == 1


def test_reject_then_approve_refused(versioning, archives, assets_root):
    live_before = (assets_root / MAIN_SCHEMATRON_PATH).read_bytes()
    archives.set('efatura', {
        'e-FaturaPaketi/schematron/UBL-TR_Main_Schematron.xml': b'<changed/>',
    })
    [preview] = versioning.preview('efatura')

    rejected = versioning.service.reject('efatura')
    assert rejected.status is VersionStatus.REJECTED
    with pytest.raises(VersionStateError):
        versioning.service.approve('efatura')

    assert (assets_root / MAIN_SCHEMATRON_PATH).read_bytes() == live_before
    assert versioning.reloads == []
    assert versioning.service.get_version(preview.version.id).status is VersionStatus.REJECTED


def test_reject_twice_returns_rejected_version(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    versioning.preview('efatura')
    first = versioning.service.reject('efatura')
    assert versioning.service.reject('efatura').id == first.id


def test_reject_after_approve_refused(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    versioning.preview('efatura')
    versioning.service.approve('efatura')
    with pytest.raises(VersionStateError, match='APPLIED'):
        versioning.service.reject('efatura')


def test_nothing_to_approve(versioning):
    with pytest.raises(VersionStateError, match='no staged version'):
        versioning.service.approve('efatura')


def test_failed_download_records_no_version(versioning):
    [preview] = versioning.preview('efatura')
    assert not preview.success
    assert preview.version is None
    assert 'HTTP 404' in preview.error
    assert versioning.service.list_versions() == []
    assert not versioning.paths.staging_dir('efatura').exists()


def test_preview_all_packages(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    previews = versioning.preview()
    assert [p.package_id for p in previews] == ['efatura', 'ubltr-xsd', 'earsiv', 'edefter']
    assert [p.success for p in previews] == [True, False, False, False]


def test_unknown_package(versioning):
    with pytest.raises(SyncError, match='Unknown package'):
        versioning.preview('nope')


def test_sync_disabled(config, registry, archives, clock):
    versioning = Versioning(config, registry, archives, clock, sync_enabled=False)
    try:
        with pytest.raises(SyncError, match='disabled'):
            versioning.preview('efatura')
    finally:
        versioning.history.dispose()


def test_busy_package(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    lock = versioning.service._locks['efatura']
    lock.acquire()
    try:
        with pytest.raises(SyncInProgressError):
            versioning.preview('efatura')
        with pytest.raises(SyncInProgressError):
            versioning.service.approve('efatura')
        previews = versioning.preview()
        assert 'already in progress' in previews[0].error
    finally:
        lock.release()


def test_preview_reports_suppression_impact(versioning, archives, registry):
    registry.save(Profile('ops', suppressions=[SuppressionRule(MatchMode.RULE_ID_EQUALS, 'R-001')]))
    archives.set('efatura', {
        'e-FaturaPaketi/schematron/UBL-TR_Main_Schematron.xml': MAIN_SCHEMATRON.replace(b'id="R-001"', b'id="R-901"'),
    })
    [preview] = versioning.preview('efatura')

    assert [(w.rule_id, w.severity) for w in preview.warnings] == [('R-001', WarningSeverity.WARNING)]
    stored = versioning.history.get_warnings(preview.version.id)
    assert [w.message for w in stored] == [w.message for w in preview.warnings]


def test_restore_pending_after_restart(config, registry, archives, clock, versioning):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')

    restarted = Versioning(config, registry, archives, clock)
    try:
        restored = restarted.service.restore_pending()
        assert [p.version.id for p in restored] == [preview.version.id]
        assert [d.path for d in restored[0].file_diffs] == [d.path for d in preview.file_diffs]
        assert restarted.service.approve('efatura').status is VersionStatus.APPLIED
    finally:
        restarted.history.dispose()


def test_restore_rejects_pending_without_staging(config, registry, archives, clock, versioning):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')
    # a crash that left the PENDING row but lost the staged files
    shutil.rmtree(versioning.paths.staging_dir('efatura'))
    restarted = Versioning(config, registry, archives, clock)
    try:
        assert restarted.service.restore_pending() == []
        assert restarted.service.get_version(preview.version.id).status is VersionStatus.REJECTED
    finally:
        restarted.history.dispose()


def test_version_listing_and_diff(versioning, archives, clock):
    archives.set('efatura', EFATURA_MEMBERS)
    [first] = versioning.preview('efatura')
    versioning.service.reject('efatura')
    clock.advance(hours=1)
    [second] = versioning.preview('efatura')

    assert [v.id for v in versioning.service.list_versions('efatura')] == [second.version.id, first.version.id]
    assert versioning.service.list_versions('earsiv') == []
    assert [d.path for d in versioning.service.version_diff(first.version.id)] == [CODELIST_PATH, MAIN_SCHEMATRON_PATH]
    with pytest.raises(AssetNotFoundError):
        versioning.service.version_diff('2000-01-01-00-00-00-efatura')


def test_file_diff_of_pending_version(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')
    detail = versioning.service.version_file_diff(preview.version.id, CODELIST_PATH)
    assert detail.status is FileChangeStatus.ADDED
    assert detail.new_content == '<codes/>'


def test_file_diff_of_applied_version(versioning, archives):
    archives.set('efatura', {
        'e-FaturaPaketi/schematron/UBL-TR_Main_Schematron.xml': MAIN_SCHEMATRON.replace(b'R-002', b'R-003'),
    })
    [preview] = versioning.preview('efatura')
    versioning.service.approve('efatura')

    detail = versioning.service.version_file_diff(preview.version.id, MAIN_SCHEMATRON_PATH)
    assert detail.status is FileChangeStatus.MODIFIED
    assert '-      <sch:assert id="R-002"' in detail.unified_diff
    assert '+      <sch:assert id="R-003"' in detail.unified_diff


def test_file_diff_of_rejected_version(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')
    versioning.service.reject('efatura')
    with pytest.raises(AssetNotFoundError, match='rejected'):
        versioning.service.version_file_diff(preview.version.id, CODELIST_PATH)


@pytest.mark.parametrize('path', ['', '/etc/passwd', '../validation-profiles.yml', 'validator/../../x'])
def test_file_diff_blocks_traversal(versioning, archives, path):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')
    with pytest.raises(AssetPathError):
        versioning.service.version_file_diff(preview.version.id, path)


def test_file_diff_of_unknown_file(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    [preview] = versioning.preview('efatura')
    with pytest.raises(AssetNotFoundError):
        versioning.service.version_file_diff(preview.version.id, 'validator/none.xml')


def test_failed_swap_leaves_live_assets_and_version_pending(versioning, archives, assets_root, monkeypatch):
    live_before = (assets_root / MAIN_SCHEMATRON_PATH).read_bytes()
    archives.set('efatura', {
        'e-FaturaPaketi/schematron/UBL-TR_Main_Schematron.xml': b'<changed/>',
    })
    [preview] = versioning.preview('efatura')

    original_rename = Path.rename
    failures = []

    def flaky_rename(self, target):
        if '.incoming-' in self.name and not failures:
            failures.append(self)
            raise OSError('disk full')
        return original_rename(self, target)

    monkeypatch.setattr(Path, 'rename', flaky_rename)
    with pytest.raises(SyncError, match='left unchanged'):
        versioning.service.approve('efatura')

    assert failures
    assert (assets_root / MAIN_SCHEMATRON_PATH).read_bytes() == live_before
    live_parent = (assets_root / MAIN_SCHEMATRON_PATH).parent.parent
    assert sorted(p.name for p in live_parent.iterdir() if '.incoming-' in p.name or '.outgoing-' in p.name) == []
    assert versioning.service.get_version(preview.version.id).status is VersionStatus.PENDING
    assert versioning.paths.staging_dir('efatura').is_dir()
    assert versioning.reloads == []

    # retrying once the fault is gone applies the same version
    applied = versioning.service.approve('efatura')
    assert applied.id == preview.version.id
    assert (assets_root / MAIN_SCHEMATRON_PATH).read_bytes() == b'<changed/>'
    assert versioning.reloads == [[AssetKind.SCHEMATRON]]


def test_failed_preview_keeps_version_awaiting_approval(versioning, archives, assets_root):
    archives.set('efatura', EFATURA_MEMBERS)
    [first] = versioning.preview('efatura')

    archives.members.pop('efatura')
    [failed] = versioning.preview('efatura')
    assert not failed.success
    assert 'HTTP 404' in failed.error

    assert [p.version.id for p in versioning.service.pending()] == [first.version.id]
    assert versioning.service.get_version(first.version.id).status is VersionStatus.PENDING
    assert versioning.paths.staging_dir('efatura').is_dir()
    assert not versioning.paths.staging_slot('efatura').exists()

    applied = versioning.service.approve('efatura')
    assert applied.id == first.version.id
    assert (assets_root / CODELIST_PATH).read_bytes() == b'<codes/>'


def test_latest_version_follows_insertion_order(versioning, archives):
    archives.set('efatura', EFATURA_MEMBERS)
    # same clock second for all of them, so ids differ only by counter suffix
    for _ in range(11):
        versioning.preview('efatura')

    versions = versioning.service.list_versions('efatura')
    assert versions[0].id == '2024-03-01-12-00-00-efatura-11'
    assert versions[-1].id == '2024-03-01-12-00-00-efatura'
    assert [p.version.id for p in versioning.service.pending()] == [versions[0].id]

    rejected = versioning.service.reject('efatura')
    assert rejected.id == versions[0].id
    again = versioning.service.reject('efatura')
    assert again.id == versions[0].id
    with pytest.raises(VersionStateError, match='efatura-11'):
        versioning.service.approve('efatura')
