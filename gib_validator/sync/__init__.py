# Path: gib_validator/sync/__init__.py
"""
GIB Asset Sync

Downloads official GIB packages into staging and promotes them to the live
asset tree only after operator approval.

Architecture (IPO):
- INPUT: packages.py, downloader.py, extractor.py
- PROCESS: package_sync.py, diff.py, impact.py
- OUTPUT: versioning.py (previews, approve/reject, version history)
"""

from .diff import AssetDiffService
from .downloader import PackageDownloader
from .extractor import PackageExtractor
from .impact import SuppressionImpactAnalyzer
from .package_sync import PackageSyncService
from .packages import PACKAGE_DEFINITIONS, get_package, package_ids
from .versioning import AssetVersioningService

__all__ = [
    'AssetDiffService',
    'PackageDownloader',
    'PackageExtractor',
    'SuppressionImpactAnalyzer',
    'PackageSyncService',
    'PACKAGE_DEFINITIONS',
    'get_package',
    'package_ids',
    'AssetVersioningService',
]
