# Path: gib_validator/exceptions.py
"""
GIB Validator Exceptions

Error taxonomy shared by every component.

Architecture:
- InputError: problems with caller-supplied data (document, profile, custom rule)
- AssetError: missing or corrupt schema/rule-set/template assets
- SyncError: package download and extraction failures
- ConflictError: state machine and name collision violations
- AuthError: missing, invalid or expired credentials
"""

from typing import List, Optional


class GibValidatorError(Exception):
    """Base class for all gib_validator errors."""
    pass


class ConfigurationError(GibValidatorError):
    """Invalid or missing configuration value."""
    pass


# ============================================================================
# INPUT ERRORS
# ============================================================================

class InputError(GibValidatorError):
    """Caller-supplied input cannot be processed."""
    pass


class DocumentTypeDetectionError(InputError):
    """Document is empty, malformed or of an unknown type."""
    pass


class DocumentParseError(InputError):
    """Document to transform is not well-formed XML."""
    pass


class ProfileError(InputError):
    """Profile definition cannot be resolved."""
    pass


class ProfileNotFoundError(ProfileError):
    pass


class CyclicProfileError(ProfileError):
    """Profile inheritance chain revisits a profile."""

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__(f"cyclic profile inheritance: {' -> '.join(self.chain)}")


class CustomRuleError(InputError):
    """
    A profile or global custom rule could not be compiled.

    Attributes:
        profile_name: Profile the broken rule belongs to ('global' for global rules)
    """

    def __init__(self, message: str, profile_name: Optional[str] = None):
        self.profile_name = profile_name
        super().__init__(message)


# ============================================================================
# ASSET ERRORS
# ============================================================================

class AssetError(GibValidatorError):
    """Schema, rule-set or template asset is missing or unusable."""
    pass


class AssetNotFoundError(AssetError):
    pass


class AssetPathError(AssetError):
    """Relative asset path escapes the asset root."""
    pass


class TransformError(AssetError):
    """Default template is missing or failed to apply."""
    pass


# ============================================================================
# SYNC ERRORS
# ============================================================================

class SyncError(GibValidatorError):
    pass


class DownloadError(SyncError):
    pass


class ExtractionError(SyncError):
    pass


# ============================================================================
# CONFLICT ERRORS
# ============================================================================

class ConflictError(GibValidatorError):
    """Operation is not valid in the current state."""
    pass


class SyncInProgressError(ConflictError):
    pass


class VersionStateError(ConflictError):
    pass


class ProfileConflictError(ConflictError):
    pass


class ReloadInProgressError(ConflictError):
    pass


# ============================================================================
# AUTH ERRORS
# ============================================================================

class AuthError(GibValidatorError):
    pass


class UnauthorizedError(AuthError):
    """Token missing, unknown or expired. Clients should re-authenticate."""
    pass


class TooManyAttemptsError(AuthError):
    pass


__all__ = [
    'GibValidatorError',
    'ConfigurationError',
    'InputError',
    'DocumentTypeDetectionError',
    'DocumentParseError',
    'ProfileError',
    'ProfileNotFoundError',
    'CyclicProfileError',
    'CustomRuleError',
    'AssetError',
    'AssetNotFoundError',
    'AssetPathError',
    'TransformError',
    'SyncError',
    'DownloadError',
    'ExtractionError',
    'ConflictError',
    'SyncInProgressError',
    'VersionStateError',
    'ProfileConflictError',
    'ReloadInProgressError',
    'AuthError',
    'UnauthorizedError',
    'TooManyAttemptsError',
]
