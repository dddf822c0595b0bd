# Path: gib_validator/service.py
"""
GIB Validator Service - Operations Facade

Wires the engine, sync and history components from configuration and
exposes the operations an HTTP layer, the CLI or an embedding application
call.

Architecture:
- Built once per process from ConfigLoader; start() loads every asset kind
  and restores staged versions left from a previous run
- On a first install, start() downloads and applies every package in a
  background thread
- Validation and transform are open; profile, global rule, template,
  sync and reload operations require an admin token
- Profile and global rule edits invalidate the derived schema/rule-set
  entries and the suppression regex cache

Example:
    service = GibValidatorService()
    service.start()
    response = service.validate(xml_bytes, source_file_name='invoice.xml', profile_name='lenient')
    token = service.login('admin', password)
    previews = asyncio.run(service.sync_preview(token, 'efatura'))
"""

import threading
from typing import Callable, Dict, List, Optional, Union

from gib_validator.core.config_loader import ConfigLoader
from gib_validator.core.data_paths import AssetPaths
from gib_validator.core.logger import get_logger
from gib_validator.engine.asset_cache import AssetCache
from gib_validator.engine.asset_store import AssetStore
from gib_validator.engine.auth import AuthService
from gib_validator.engine.detector import DocumentTypeDetector
from gib_validator.engine.profiles import ProfileRegistry
from gib_validator.engine.reload import ReloadOrchestrator
from gib_validator.engine.schema_validator import SchemaValidator
from gib_validator.engine.schematron_validator import SchematronValidator
from gib_validator.engine.suppression import RegexCache, SuppressionEngine
from gib_validator.engine.transformer import XsltTransformer
from gib_validator.engine.validation_service import ValidationService
from gib_validator.exceptions import ConfigurationError, GibValidatorError
from gib_validator.history.database import HistoryDatabase
from gib_validator.models.document_types import SchematronValidationType, TransformType, parse_enum
from gib_validator.models.profile import Profile, SchematronCustomRule
from gib_validator.models.reload import AssetKind, ReloadReport
from gib_validator.models.transform import TransformRequest, TransformResult
from gib_validator.models.validation import ValidationResponse
from gib_validator.models.versioning import (
    AssetVersion,
    FileDiffDetail,
    FileDiffSummary,
    SyncPreview,
    WarningSeverity,
)
from gib_validator.sync.diff import AssetDiffService
from gib_validator.sync.downloader import PackageDownloader
from gib_validator.sync.impact import SuppressionImpactAnalyzer
from gib_validator.sync.package_sync import PackageSyncService
from gib_validator.sync.versioning import AssetVersioningService
from gib_validator.constants import LOG_INPUT, LOG_OUTPUT

logger = get_logger(__name__, 'engine')


def _severity(config: ConfigLoader, key: str) -> WarningSeverity:
    value = str(config.get(key) or '').upper()
    try:
        return WarningSeverity[value]
    except KeyError:
        raise ConfigurationError(
            f"{key} must be one of {', '.join(s.value for s in WarningSeverity)}: {value!r}"
        )


class GibValidatorService:
    """
    One instance per process.

    Attributes:
        paths: Asset filesystem layout
        registry: Validation profiles
        orchestrator: Per-kind reload
        versioning: Staged package sync and version history
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        downloader_factory: Optional[Callable[[], PackageDownloader]] = None
    ):
        self.config = config if config else ConfigLoader()
        self.paths = AssetPaths(self.config)
        self.paths.ensure_all_directories()

        self.store = AssetStore(self.paths.root)
        self.cache = AssetCache(
            ttl_seconds=self.config.get('cache_ttl_seconds'),
            max_entries=self.config.get('cache_max_entries'),
        )
        self.regex_cache = RegexCache()

        self.registry = ProfileRegistry(self.paths.profiles_file)
        self.registry.add_listener(self._on_profiles_changed)

        self.schema_validator = SchemaValidator(self.store, self.cache)
        self.schematron_validator = SchematronValidator(
            self.store,
            self.cache,
            global_rules=self.registry.global_rules_for,
            default_ubl_type=self.config.get('ubltr_schematron_type'),
        )
        self.transformer = XsltTransformer(self.store, watermark_repeat=self.config.get('watermark_repeat'))

        self.orchestrator = ReloadOrchestrator({
            AssetKind.PROFILES: self.registry,
            AssetKind.SCHEMA: self.schema_validator,
            AssetKind.SCHEMATRON: self.schematron_validator,
            AssetKind.TEMPLATES: self.transformer,
        })
        self.validation = ValidationService(
            DocumentTypeDetector(),
            self.registry,
            self.schema_validator,
            self.schematron_validator,
            SuppressionEngine(self.regex_cache),
        )

        self.auth = AuthService(
            self.config.get('auth_username'),
            self.config.get('auth_password'),
            token_expiry_hours=self.config.get('auth_token_expiry_hours'),
            environment=self.config.get('environment'),
        )

        self.history = HistoryDatabase(self.config.get('history_db_url'))
        sync_service = PackageSyncService(
            downloader_factory=downloader_factory or self._make_downloader,
            package_timeout_seconds=self.config.get('sync_package_timeout_seconds'),
        )
        impact = SuppressionImpactAnalyzer(
            self.registry,
            severity_unscoped=_severity(self.config, 'severity_unscoped'),
            severity_scoped=_severity(self.config, 'severity_scoped'),
            regex_cache=self.regex_cache,
        )
        self.versioning = AssetVersioningService(
            self.paths,
            self.history,
            sync_service,
            AssetDiffService(),
            impact,
            reload_callback=self._reload_promoted,
            sync_enabled=self.config.get('sync_enabled'),
        )
        self._initial_sync: Optional[threading.Thread] = None

    def _make_downloader(self) -> PackageDownloader:
        return PackageDownloader(
            connect_timeout_ms=self.config.get('sync_connect_timeout_ms'),
            read_timeout_ms=self.config.get('sync_read_timeout_ms'),
            max_download_mb=self.config.get('sync_max_download_mb'),
            base_url_override=self.config.get('sync_base_url_override'),
            retry_attempts=self.config.get('sync_retry_attempts'),
        )

    def _reload_promoted(self, kinds) -> ReloadReport:
        # blocks behind a running reload instead of skipping
        return self.orchestrator.reload(kinds, wait=True)

    def _on_profiles_changed(self) -> None:
        self.regex_cache.clear()
        self.cache.invalidate(AssetKind.SCHEMA)
        self.cache.invalidate(AssetKind.SCHEMATRON)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self, auto_sync: bool = True) -> ReloadReport:
        """
        Load every asset kind and restore staged versions.

        On a first install (no package files on disk) with sync and
        sync_auto_on_startup enabled, all packages are downloaded and
        applied in a background thread; auto_sync=False skips that.
        """
        logger.info(f"{LOG_INPUT} Starting validator service (assets: {self.paths.root})")
        report = self.orchestrator.reload_all()
        restored = self.versioning.restore_pending()
        logger.info(
            f"{LOG_OUTPUT} Service ready: generation {report.generation}, "
            f"{report.status.value}, {len(restored)} staged versions restored"
        )
        if (auto_sync and self.config.get('sync_enabled') and self.config.get('sync_auto_on_startup')
                and self.versioning.live_assets_empty()):
            logger.info("Asset directory is empty, downloading GIB packages in the background")
            self._initial_sync = threading.Thread(
                target=self._run_initial_sync, name='gib-auto-sync', daemon=True
            )
            self._initial_sync.start()
        return report

    @property
    def initial_sync_in_progress(self) -> bool:
        return self._initial_sync is not None and self._initial_sync.is_alive()

    def wait_for_initial_sync(self, timeout: Optional[float] = None) -> bool:
        """Returns False if the initial sync is still running after timeout."""
        if self._initial_sync is not None:
            self._initial_sync.join(timeout)
        return not self.initial_sync_in_progress

    def _run_initial_sync(self) -> None:
        try:
            self.versioning.initial_sync()
        except (GibValidatorError, OSError) as e:
            logger.error(f"Initial GIB package sync failed: {e}", exc_info=True)

    def close(self) -> None:
        self.wait_for_initial_sync()
        self.validation.close()
        self.history.dispose()

    # ------------------------------------------------------------------
    # validation / transform
    # ------------------------------------------------------------------

    def validate(
        self,
        content: bytes,
        source_file_name: Optional[str] = None,
        ubl_sub_type: Optional[str] = None,
        profile_name: Optional[str] = None,
        suppressions: Optional[str] = None
    ) -> ValidationResponse:
        return self.validation.validate(
            content,
            source_file_name=source_file_name,
            ubl_sub_type=ubl_sub_type,
            profile_name=profile_name,
            suppressions=suppressions,
        )

    def transform(
        self,
        document: bytes,
        transform_type: Union[TransformType, str],
        transformer: Optional[bytes] = None,
        watermark_text: Optional[str] = None,
        use_embedded_xslt: bool = False
    ) -> TransformResult:
        return self.transformer.transform(TransformRequest(
            document=document,
            transform_type=parse_enum(TransformType, transform_type),
            transformer=transformer,
            watermark_text=watermark_text,
            use_embedded_xslt=use_embedded_xslt,
        ))

    # ------------------------------------------------------------------
    # profiles and global rules
    # ------------------------------------------------------------------

    def list_profiles(self) -> List[Profile]:
        return self.registry.list_profiles()

    def get_profile(self, name: str) -> Profile:
        return self.registry.get(name)

    def save_profile(self, token: Optional[str], profile: Union[Profile, Dict], name: Optional[str] = None) -> Profile:
        self.auth.require(token)
        if not isinstance(profile, Profile):
            profile = Profile.from_dict(name, profile)
        return self.registry.save(profile)

    def delete_profile(self, token: Optional[str], name: str) -> None:
        self.auth.require(token)
        self.registry.delete(name)

    def get_global_rules(self) -> Dict[str, List[SchematronCustomRule]]:
        return self.registry.global_rules()

    def put_global_rules(self, token: Optional[str], rule_set_type: str,
                         rules: List[Union[SchematronCustomRule, Dict]]) -> None:
        """
        Replace the global rules of one rule-set type and recompile it.

        Raises:
            CustomRuleError: The merged rule set does not compile
        """
        self.auth.require(token)
        schematron_type = parse_enum(SchematronValidationType, rule_set_type)
        parsed = [r if isinstance(r, SchematronCustomRule) else SchematronCustomRule.from_dict(r) for r in rules]
        self.schematron_validator.verify_rules(schematron_type, [r for r in parsed if r.is_complete()])
        self.registry.put_global_rules(schematron_type.value, parsed)
        self.schematron_validator.warm(schematron_type, (), None)

    def delete_global_rules(self, token: Optional[str], rule_set_type: Optional[str] = None) -> None:
        self.auth.require(token)
        type_name = parse_enum(SchematronValidationType, rule_set_type).value if rule_set_type else None
        self.registry.delete_global_rules(type_name)

    # ------------------------------------------------------------------
    # default templates
    # ------------------------------------------------------------------

    def get_default_template(self, transform_type: Union[TransformType, str]) -> bytes:
        return self.transformer.get_default_template(parse_enum(TransformType, transform_type))

    def put_default_template(self, token: Optional[str], transform_type: Union[TransformType, str],
                             content: bytes) -> None:
        self.auth.require(token)
        self.transformer.put_default_template(parse_enum(TransformType, transform_type), content)

    def delete_default_template(self, token: Optional[str], transform_type: Union[TransformType, str]) -> bool:
        self.auth.require(token)
        return self.transformer.delete_default_template(parse_enum(TransformType, transform_type))

    # ------------------------------------------------------------------
    # sync and versions
    # ------------------------------------------------------------------

    async def sync_preview(self, token: Optional[str], package_id: Optional[str] = None) -> List[SyncPreview]:
        self.auth.require(token)
        return await self.versioning.preview(package_id)

    def sync_pending(self) -> List[SyncPreview]:
        return self.versioning.pending()

    def sync_approve(self, token: Optional[str], package_id: str) -> AssetVersion:
        self.auth.require(token)
        return self.versioning.approve(package_id)

    def sync_reject(self, token: Optional[str], package_id: str) -> AssetVersion:
        self.auth.require(token)
        return self.versioning.reject(package_id)

    def list_versions(self, package_id: Optional[str] = None) -> List[AssetVersion]:
        return self.versioning.list_versions(package_id)

    def version_diff(self, version_id: str) -> List[FileDiffSummary]:
        return self.versioning.version_diff(version_id)

    def version_file_diff(self, version_id: str, path: str) -> FileDiffDetail:
        return self.versioning.version_file_diff(version_id, path)

    # ------------------------------------------------------------------
    # reload and auth
    # ------------------------------------------------------------------

    def reload(self, token: Optional[str], kinds: Optional[List[Union[AssetKind, str]]] = None) -> ReloadReport:
        self.auth.require(token)
        parsed = [parse_enum(AssetKind, kind) for kind in kinds] if kinds else None
        return self.orchestrator.reload(parsed)

    def login(self, username: str, password: str) -> str:
        return self.auth.login(username, password)

    def check(self, token: Optional[str]) -> bool:
        return self.auth.check(token)

    def logout(self, token: Optional[str]) -> bool:
        return self.auth.logout(token)


__all__ = ['GibValidatorService']
