# Path: gib_validator/engine/__init__.py
"""
GIB Validator Engine

Validation, suppression, transformation and the in-memory asset generations
they read from.

Architecture (IPO):
- INPUT: detector.py, asset_store.py, profiles.py
- PROCESS: schema_validator.py, schematron_validator.py, suppression.py, transformer.py
- OUTPUT: validation_service.py, reload.py
"""

from .asset_cache import AssetCache, GenerationPointer
from .asset_store import AssetStore
from .auth import AuthService
from .detector import DocumentTypeDetector
from .profiles import ProfileRegistry
from .reload import ReloadOrchestrator
from .schema_validator import SchemaValidator
from .schematron_validator import SchematronValidator
from .suppression import SuppressionEngine, RegexCache
from .transformer import XsltTransformer
from .validation_service import ValidationService

__all__ = [
    'AssetCache',
    'GenerationPointer',
    'AssetStore',
    'AuthService',
    'DocumentTypeDetector',
    'ProfileRegistry',
    'ReloadOrchestrator',
    'SchemaValidator',
    'SchematronValidator',
    'SuppressionEngine',
    'RegexCache',
    'XsltTransformer',
    'ValidationService',
]
