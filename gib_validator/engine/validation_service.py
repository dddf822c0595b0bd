# Path: gib_validator/engine/validation_service.py
"""
Validation Service

Runs the full validation pipeline for one document.

Architecture:
- Detect the document type (detection failures become an error message)
- Resolve the named profile and append request-level suppressions
- Run XSD and Schematron validation in parallel on a shared thread pool
- Filter both error lists through the suppression engine
- A broken profile override or custom rule is reported as a configuration
  error and that validator is re-run without the profile additions
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from gib_validator.core.logger import get_logger
from gib_validator.engine.detector import DocumentTypeDetector
from gib_validator.engine.profiles import ProfileRegistry
from gib_validator.engine.schema_validator import SchemaValidator
from gib_validator.engine.schematron_validator import SchematronValidator
from gib_validator.engine.suppression import SuppressionEngine, parse_adhoc_suppressions
from gib_validator.exceptions import CustomRuleError, DocumentTypeDetectionError, ProfileError
from gib_validator.models.document_types import (
    DocumentType,
    SCHEMA_MAP,
    SCHEMATRON_MAP,
    SCHEMATRON_PATH_MAP,
    XSD_PATH_MAP,
    file_name,
)
from gib_validator.models.profile import EMPTY_PROFILE, ResolvedProfile
from gib_validator.models.validation import RuleError, SuppressionInfo, ValidationResponse, ValidationResult
from gib_validator.constants import LOG_INPUT, LOG_OUTPUT, LOG_PROCESS

logger = get_logger(__name__, 'engine')

_DETECTION_PREFIX = 'Document type could not be detected'


class ValidationService:
    """
    Example:
        service = ValidationService(detector, registry, schema_validator, schematron_validator)
        response = service.validate(xml_bytes, source_file_name='invoice.xml', profile_name='lenient')
    """

    def __init__(
        self,
        detector: DocumentTypeDetector,
        registry: ProfileRegistry,
        schema_validator: SchemaValidator,
        schematron_validator: SchematronValidator,
        suppression_engine: Optional[SuppressionEngine] = None,
        max_workers: int = 8
    ):
        self.detector = detector
        self.registry = registry
        self.schema_validator = schema_validator
        self.schematron_validator = schematron_validator
        self.suppression_engine = suppression_engine or SuppressionEngine()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='gib-validate')

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def validate(
        self,
        content: bytes,
        source_file_name: Optional[str] = None,
        ubl_sub_type: Optional[str] = None,
        profile_name: Optional[str] = None,
        suppressions: Optional[str] = None
    ) -> ValidationResponse:
        """
        Validate one document.

        Args:
            content: Raw document bytes
            source_file_name: Original file name, used as the document base URI
            ubl_sub_type: 'type' parameter for the UBL-TR rule set
            profile_name: Validation profile to apply
            suppressions: Comma separated request-level suppressions

        Raises:
            AssetError: Schema or rule set for the detected type is unavailable
        """
        logger.info(f"{LOG_INPUT} Validate {source_file_name or '<upload>'} ({len(content or b'')} bytes, profile={profile_name})")
        try:
            document_type = self.detector.detect(content)
        except DocumentTypeDetectionError as e:
            message = str(e)
            if not message.startswith(_DETECTION_PREFIX):
                message = f"{_DETECTION_PREFIX}: {message}"
            logger.info(f"{LOG_OUTPUT} {message}")
            return ValidationResponse(error_message=message)

        result = ValidationResult(detected_document_type=document_type.value)
        schema_type = SCHEMA_MAP[document_type]
        schematron_type = SCHEMATRON_MAP[document_type]
        result.applied_xsd_path = XSD_PATH_MAP[schema_type]
        result.applied_xsd = file_name(result.applied_xsd_path)
        result.applied_schematron_path = SCHEMATRON_PATH_MAP[schematron_type]
        result.applied_schematron = file_name(result.applied_schematron_path)

        profile = self._resolve_profile(profile_name, result.configuration_errors)
        adhoc = parse_adhoc_suppressions(suppressions)
        profile = profile.with_suppressions(adhoc)

        overrides = profile.overrides_for(schema_type.value, document_type.value)
        custom_rules = profile.rules_for(schematron_type.value)
        logger.info(
            f"{LOG_PROCESS} {document_type.value}: XSD {schema_type.value} ({len(overrides)} overrides), "
            f"Schematron {schematron_type.value} ({len(custom_rules)} custom rules)"
        )

        schema_future = self._executor.submit(
            self._run_schema, content, schema_type, overrides, profile.name
        )
        schematron_future = self._executor.submit(
            self._run_schematron, content, schematron_type, custom_rules, profile.name,
            ubl_sub_type, source_file_name
        )
        schema_errors, schema_config_errors = schema_future.result()
        rule_errors, rule_config_errors = schematron_future.result()
        result.configuration_errors.extend(schema_config_errors + rule_config_errors)

        self._apply_suppressions(result, profile, bool(adhoc), document_type, schema_errors, rule_errors)
        logger.info(
            f"{LOG_OUTPUT} {document_type.value}: {len(result.schema_validation_errors)} XSD errors, "
            f"{len(result.schematron_validation_errors)} Schematron errors"
            + (f", {result.suppression_info.suppressed_count} suppressed" if result.suppression_info else '')
        )
        return ValidationResponse(result=result)

    # ------------------------------------------------------------------
    # pipeline steps
    # ------------------------------------------------------------------

    def _resolve_profile(self, profile_name: Optional[str], configuration_errors: List[str]) -> ResolvedProfile:
        try:
            return self.registry.resolve(profile_name)
        except ProfileError as e:
            logger.warning(f"Profile '{profile_name}' not applied: {e}")
            configuration_errors.append(f"Profile '{profile_name}' could not be applied: {e}")
            return EMPTY_PROFILE

    def _run_schema(self, content, schema_type, overrides, profile_name) -> Tuple[List[str], List[str]]:
        try:
            return self.schema_validator.validate(content, schema_type, overrides, profile_name), []
        except CustomRuleError as e:
            logger.warning(f"XSD overrides skipped: {e}")
            return self.schema_validator.validate(content, schema_type), [str(e)]

    def _run_schematron(self, content, schematron_type, custom_rules, profile_name,
                        ubl_sub_type, source_file_name) -> Tuple[List[RuleError], List[str]]:
        try:
            errors = self.schematron_validator.validate(
                content, schematron_type, custom_rules, profile_name,
                ubl_sub_type=ubl_sub_type, source_file_name=source_file_name,
            )
            return errors, []
        except CustomRuleError as e:
            logger.warning(f"Custom Schematron rules skipped: {e}")
            errors = self.schematron_validator.validate(
                content, schematron_type,
                ubl_sub_type=ubl_sub_type, source_file_name=source_file_name, include_global=False,
            )
            return errors, [str(e)]

    def _apply_suppressions(
        self,
        result: ValidationResult,
        profile: ResolvedProfile,
        has_adhoc: bool,
        document_type: DocumentType,
        schema_errors: List[str],
        rule_errors: List[RuleError]
    ) -> None:
        active_types = {
            SCHEMA_MAP[document_type].value,
            SCHEMATRON_MAP[document_type].value,
            document_type.value,
        }
        kept_rules, suppressed_rules = self.suppression_engine.filter_rule_errors(
            rule_errors, profile.suppressions, active_types
        )
        kept_schema, suppressed_schema = self.suppression_engine.filter_schema_errors(
            schema_errors, profile.suppressions, active_types
        )
        result.schema_validation_errors = kept_schema
        result.schematron_validation_errors = kept_rules

        if profile.name or has_adhoc:
            result.suppression_info = SuppressionInfo(
                profile=profile.name,
                total_raw_errors=len(schema_errors) + len(rule_errors),
                suppressed_count=len(suppressed_rules) + len(suppressed_schema),
                suppressed_errors=suppressed_rules + [RuleError(None, None, text) for text in suppressed_schema],
            )


__all__ = ['ValidationService']
