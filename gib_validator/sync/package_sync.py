# Path: gib_validator/sync/package_sync.py
"""
Package Sync Service

Downloads and extracts GIB packages, one result per package.

Architecture:
- Packages download concurrently (asyncio.gather), each under its own timeout
- A failing package yields a failed PackageSyncResult; siblings continue
- Archives go to a private temp directory and are removed afterwards
- Extraction runs in a worker thread so the event loop stays responsive
"""

import asyncio
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import SyncError
from gib_validator.models.versioning import PackageDefinition, PackageSyncResult
from gib_validator.sync.downloader import PackageDownloader
from gib_validator.sync.extractor import PackageExtractor
from gib_validator.sync.packages import get_package, package_ids
from gib_validator.constants import DEFAULT_PACKAGE_TIMEOUT, LOG_INPUT, LOG_OUTPUT

logger = get_logger(__name__, 'sync')


class PackageSyncService:
    """
    Example:
        service = PackageSyncService(lambda: PackageDownloader(max_download_mb=200))
        results = asyncio.run(service.sync(['efatura'], lambda pkg: staging_root / pkg))
    """

    def __init__(
        self,
        downloader_factory: Callable[[], PackageDownloader] = PackageDownloader,
        extractor: Optional[PackageExtractor] = None,
        package_timeout_seconds: int = DEFAULT_PACKAGE_TIMEOUT
    ):
        self.downloader_factory = downloader_factory
        self.extractor = extractor or PackageExtractor()
        self.package_timeout_seconds = package_timeout_seconds

    async def sync(
        self,
        requested_ids: Optional[Iterable[str]],
        target_root_for: Callable[[str], Path]
    ) -> List[PackageSyncResult]:
        """
        Sync the requested packages (all when None).

        Args:
            requested_ids: Package ids, or None for every known package
            target_root_for: Maps a package id to the root its files are extracted under
        """
        ids = list(requested_ids) if requested_ids else package_ids()
        logger.info(f"{LOG_INPUT} Syncing packages: {', '.join(ids)}")
        async with self.downloader_factory() as downloader:
            results = await asyncio.gather(
                *(self._sync_one(downloader, package_id, target_root_for) for package_id in ids)
            )
        succeeded = sum(1 for result in results if result.success)
        logger.info(f"{LOG_OUTPUT} Sync finished: {succeeded}/{len(results)} packages succeeded")
        return list(results)

    async def _sync_one(
        self,
        downloader: PackageDownloader,
        package_id: str,
        target_root_for: Callable[[str], Path]
    ) -> PackageSyncResult:
        start = time.time()
        try:
            package = get_package(package_id)
        except SyncError as e:
            return PackageSyncResult.failure(package_id, package_id, 0, str(e))

        work_dir = Path(tempfile.mkdtemp(prefix=f'gib-{package.id}-'))
        try:
            archive = work_dir / f'{package.id}.zip'
            await asyncio.wait_for(
                downloader.download(package.download_url, archive),
                timeout=self.package_timeout_seconds
            )
            written = await asyncio.to_thread(
                self.extractor.extract, archive, package.file_mappings, target_root_for(package.id)
            )
        except asyncio.TimeoutError:
            return self._failed(package, start, f"Download timed out after {self.package_timeout_seconds}s")
        except (SyncError, OSError) as e:
            return self._failed(package, start, str(e))
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        if not written:
            return self._failed(package, start, "No files in the package matched its file mappings")

        duration = int((time.time() - start) * 1000)
        logger.info(f"{LOG_OUTPUT} {package.id}: {len(written)} files in {duration} ms")
        return PackageSyncResult(
            package_id=package.id,
            display_name=package.display_name,
            success=True,
            files_extracted=len(written),
            extracted_files=written,
            duration_ms=duration,
        )

    @staticmethod
    def _failed(package: PackageDefinition, start: float, error: str) -> PackageSyncResult:
        logger.error(f"Package {package.id} failed: {error}")
        return PackageSyncResult.failure(package.id, package.display_name, int((time.time() - start) * 1000), error)


__all__ = ['PackageSyncService']
