# Path: gib_validator/history/__init__.py
"""
Version History

Append-only record of asset sync attempts, stored with SQLAlchemy.
"""

from .database import HistoryDatabase
from .models import Base, AssetVersionRecord, AssetVersionFileRecord, AssetVersionWarningRecord

__all__ = [
    'HistoryDatabase',
    'Base',
    'AssetVersionRecord',
    'AssetVersionFileRecord',
    'AssetVersionWarningRecord',
]
