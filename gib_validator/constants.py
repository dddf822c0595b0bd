# Path: gib_validator/constants.py
"""
GIB Validator Constants

Module-wide constants for validation, transformation and asset sync.
Document-type specific maps live in models/document_types.py.

No hardcoded absolute paths - the asset root comes from .env via config_loader.
"""

# ============================================================================
# ENVIRONMENT VARIABLE NAMES
# ============================================================================
ENV_ASSETS_DIR: str = 'GIB_ASSETS_DIR'
ENV_PROFILES_FILE: str = 'GIB_PROFILES_FILE'
ENV_HISTORY_DB_URL: str = 'GIB_HISTORY_DB_URL'
ENV_LOG_DIR: str = 'GIB_LOG_DIR'
ENV_LOG_LEVEL: str = 'GIB_LOG_LEVEL'
ENV_LOG_CONSOLE: str = 'GIB_LOG_CONSOLE'
ENV_CACHE_TTL_SECONDS: str = 'GIB_CACHE_TTL_SECONDS'
ENV_CACHE_MAX_ENTRIES: str = 'GIB_CACHE_MAX_ENTRIES'
ENV_SYNC_ENABLED: str = 'GIB_SYNC_ENABLED'
ENV_SYNC_CONNECT_TIMEOUT_MS: str = 'GIB_SYNC_CONNECT_TIMEOUT_MS'
ENV_SYNC_READ_TIMEOUT_MS: str = 'GIB_SYNC_READ_TIMEOUT_MS'
ENV_SYNC_PACKAGE_TIMEOUT: str = 'GIB_SYNC_PACKAGE_TIMEOUT'
ENV_SYNC_MAX_DOWNLOAD_MB: str = 'GIB_SYNC_MAX_DOWNLOAD_MB'
ENV_SYNC_BASE_URL: str = 'GIB_SYNC_BASE_URL'
ENV_SYNC_RETRY_ATTEMPTS: str = 'GIB_SYNC_RETRY_ATTEMPTS'
ENV_SYNC_AUTO_ON_STARTUP: str = 'GIB_SYNC_AUTO_ON_STARTUP'
ENV_WATERMARK_REPEAT: str = 'GIB_WATERMARK_REPEAT'
ENV_UBLTR_SCHEMATRON_TYPE: str = 'GIB_UBLTR_SCHEMATRON_TYPE'
ENV_ADMIN_USERNAME: str = 'GIB_ADMIN_USERNAME'
ENV_ADMIN_PASSWORD: str = 'GIB_ADMIN_PASSWORD'
ENV_TOKEN_EXPIRY_HOURS: str = 'GIB_TOKEN_EXPIRY_HOURS'
ENV_ENVIRONMENT: str = 'GIB_ENVIRONMENT'
ENV_SEVERITY_UNSCOPED: str = 'GIB_SEVERITY_UNSCOPED'
ENV_SEVERITY_SCOPED: str = 'GIB_SEVERITY_SCOPED'

# ============================================================================
# ASSET LAYOUT (relative to the asset root)
# ============================================================================
DEFAULT_ASSETS_DIR: str = 'assets'
PROFILES_FILE_NAME: str = 'validation-profiles.yml'
HISTORY_DIR: str = 'history'
HISTORY_DB_NAME: str = 'versions.db'
SNAPSHOTS_DIR: str = 'history/snapshots'
SNAPSHOT_BEFORE: str = '_before'
SNAPSHOT_AFTER: str = '_after'
STAGING_DIR: str = 'staging'
AUTO_GENERATED_DIR: str = 'auto-generated'
AUTO_GENERATED_SCHEMA: str = 'schema-overrides'
AUTO_GENERATED_SCHEMATRON: str = 'schematron-rules'
DEFAULT_TRANSFORMERS_DIR: str = 'default_transformers'
LOGS_DIR: str = 'logs'

# ============================================================================
# CACHE DEFAULTS
# ============================================================================
DEFAULT_CACHE_TTL_SECONDS: int = 3600
DEFAULT_CACHE_MAX_ENTRIES: int = 50

# ============================================================================
# SYNC DEFAULTS
# ============================================================================
DEFAULT_CONNECT_TIMEOUT_MS: int = 10000
DEFAULT_READ_TIMEOUT_MS: int = 60000
DEFAULT_PACKAGE_TIMEOUT: int = 300  # seconds per package download
DEFAULT_MAX_DOWNLOAD_MB: int = 200
DEFAULT_RETRY_ATTEMPTS: int = 3
DEFAULT_CHUNK_SIZE: int = 8192
ZIP_MAGIC: bytes = b'PK\x03\x04'
MAX_EXTRACTION_DEPTH: int = 25

HTTP_OK: int = 200
HTTP_TOO_MANY_REQUESTS: int = 429
HTTP_SERVER_ERROR: int = 500
HTTP_BAD_GATEWAY: int = 502
HTTP_SERVICE_UNAVAILABLE: int = 503
HTTP_GATEWAY_TIMEOUT: int = 504
RETRYABLE_STATUS_CODES: list = [
    HTTP_TOO_MANY_REQUESTS,
    HTTP_SERVER_ERROR,
    HTTP_BAD_GATEWAY,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_GATEWAY_TIMEOUT
]

# ============================================================================
# DIFF DEFAULTS
# ============================================================================
BINARY_SNIFF_BYTES: int = 8192
MAX_TEXT_DIFF_BYTES: int = 10 * 1024 * 1024
DIFF_CONTEXT_LINES: int = 3
RULE_FILE_SUFFIXES: tuple = ('.xml', '.sch')

# ============================================================================
# VALIDATION / TRANSFORM DEFAULTS
# ============================================================================
DEFAULT_UBLTR_SCHEMATRON_TYPE: str = 'efatura'
DEFAULT_WATERMARK_REPEAT: int = 3
MAX_ADHOC_SUPPRESSION_LENGTH: int = 500
MAX_REGEX_CACHE_ENTRIES: int = 1000
MAX_HUMANIZED_LIST_ITEMS: int = 3
SCHEMA_RESOLVE_MAX_DEPTH: int = 3
LEGACY_TEMPLATE_ENCODING: str = 'windows-1254'

# ============================================================================
# AUTH DEFAULTS
# ============================================================================
DEFAULT_ADMIN_USERNAME: str = 'admin'
DEFAULT_ADMIN_PASSWORD: str = 'changeme'
DEFAULT_TOKEN_EXPIRY_HOURS: int = 24
MAX_FAILED_LOGINS: int = 5
LOCKOUT_WINDOW_MINUTES: int = 15
PRODUCTION_ENVIRONMENT: str = 'production'

# ============================================================================
# TRANSFORM RESPONSE HEADERS
# ============================================================================
HEADER_DEFAULT_USED: str = 'X-Xslt-Default-Used'
HEADER_EMBEDDED_USED: str = 'X-Xslt-Embedded-Used'
HEADER_CUSTOM_ERROR: str = 'X-Xslt-Custom-Error'
HEADER_DURATION_MS: str = 'X-Xslt-Duration-Ms'
HEADER_WATERMARK_APPLIED: str = 'X-Xslt-Watermark-Applied'
HEADER_OUTPUT_SIZE: str = 'X-Xslt-Output-Size'

# ============================================================================
# RELOAD COMPONENT NAMES
# ============================================================================
COMPONENT_PROFILES: str = 'Validation Profiles'
COMPONENT_SCHEMAS: str = 'XSD Schemas'
COMPONENT_SCHEMATRON: str = 'Schematron Rules'
COMPONENT_TEMPLATES: str = 'XSLT Templates'

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================
LOG_FORMAT: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'

# IPO logging prefixes
LOG_INPUT: str = '[INPUT]'
LOG_PROCESS: str = '[PROCESS]'
LOG_OUTPUT: str = '[OUTPUT]'

# Logger names
LOGGER_ROOT: str = 'gib_validator'
LOGGER_CORE: str = 'gib_validator.core'
LOGGER_ENGINE: str = 'gib_validator.engine'
LOGGER_SYNC: str = 'gib_validator.sync'
LOGGER_CLI: str = 'gib_validator.cli'


__all__ = [
    'ENV_ASSETS_DIR',
    'ENV_PROFILES_FILE',
    'ENV_HISTORY_DB_URL',
    'ENV_LOG_DIR',
    'ENV_LOG_LEVEL',
    'ENV_LOG_CONSOLE',
    'ENV_CACHE_TTL_SECONDS',
    'ENV_CACHE_MAX_ENTRIES',
    'ENV_SYNC_ENABLED',
    'ENV_SYNC_CONNECT_TIMEOUT_MS',
    'ENV_SYNC_READ_TIMEOUT_MS',
    'ENV_SYNC_PACKAGE_TIMEOUT',
    'ENV_SYNC_MAX_DOWNLOAD_MB',
    'ENV_SYNC_BASE_URL',
    'ENV_SYNC_RETRY_ATTEMPTS',
    'ENV_SYNC_AUTO_ON_STARTUP',
    'ENV_WATERMARK_REPEAT',
    'ENV_UBLTR_SCHEMATRON_TYPE',
    'ENV_ADMIN_USERNAME',
    'ENV_ADMIN_PASSWORD',
    'ENV_TOKEN_EXPIRY_HOURS',
    'ENV_ENVIRONMENT',
    'ENV_SEVERITY_UNSCOPED',
    'ENV_SEVERITY_SCOPED',
    'DEFAULT_ASSETS_DIR',
    'PROFILES_FILE_NAME',
    'HISTORY_DIR',
    'HISTORY_DB_NAME',
    'SNAPSHOTS_DIR',
    'SNAPSHOT_BEFORE',
    'SNAPSHOT_AFTER',
    'STAGING_DIR',
    'AUTO_GENERATED_DIR',
    'AUTO_GENERATED_SCHEMA',
    'AUTO_GENERATED_SCHEMATRON',
    'DEFAULT_TRANSFORMERS_DIR',
    'LOGS_DIR',
    'DEFAULT_CACHE_TTL_SECONDS',
    'DEFAULT_CACHE_MAX_ENTRIES',
    'DEFAULT_CONNECT_TIMEOUT_MS',
    'DEFAULT_READ_TIMEOUT_MS',
    'DEFAULT_PACKAGE_TIMEOUT',
    'DEFAULT_MAX_DOWNLOAD_MB',
    'DEFAULT_RETRY_ATTEMPTS',
    'DEFAULT_CHUNK_SIZE',
    'ZIP_MAGIC',
    'MAX_EXTRACTION_DEPTH',
    'HTTP_OK',
    'HTTP_TOO_MANY_REQUESTS',
    'HTTP_SERVER_ERROR',
    'HTTP_BAD_GATEWAY',
    'HTTP_SERVICE_UNAVAILABLE',
    'HTTP_GATEWAY_TIMEOUT',
    'RETRYABLE_STATUS_CODES',
    'BINARY_SNIFF_BYTES',
    'MAX_TEXT_DIFF_BYTES',
    'DIFF_CONTEXT_LINES',
    'RULE_FILE_SUFFIXES',
    'DEFAULT_UBLTR_SCHEMATRON_TYPE',
    'DEFAULT_WATERMARK_REPEAT',
    'MAX_ADHOC_SUPPRESSION_LENGTH',
    'MAX_REGEX_CACHE_ENTRIES',
    'MAX_HUMANIZED_LIST_ITEMS',
    'SCHEMA_RESOLVE_MAX_DEPTH',
    'LEGACY_TEMPLATE_ENCODING',
    'DEFAULT_ADMIN_USERNAME',
    'DEFAULT_ADMIN_PASSWORD',
    'DEFAULT_TOKEN_EXPIRY_HOURS',
    'MAX_FAILED_LOGINS',
    'LOCKOUT_WINDOW_MINUTES',
    'PRODUCTION_ENVIRONMENT',
    'HEADER_DEFAULT_USED',
    'HEADER_EMBEDDED_USED',
    'HEADER_CUSTOM_ERROR',
    'HEADER_DURATION_MS',
    'HEADER_WATERMARK_APPLIED',
    'HEADER_OUTPUT_SIZE',
    'COMPONENT_PROFILES',
    'COMPONENT_SCHEMAS',
    'COMPONENT_SCHEMATRON',
    'COMPONENT_TEMPLATES',
    'LOG_FORMAT',
    'LOG_DATE_FORMAT',
    'LOG_INPUT',
    'LOG_PROCESS',
    'LOG_OUTPUT',
    'LOGGER_ROOT',
    'LOGGER_CORE',
    'LOGGER_ENGINE',
    'LOGGER_SYNC',
    'LOGGER_CLI',
]
