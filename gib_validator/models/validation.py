# Path: gib_validator/models/validation.py
"""
Validation Result Objects

Structured results for the validate operation.

Architecture:
- RuleError: one failed Schematron assertion
- SuppressionInfo: what the active profile removed
- ValidationResult: combined XSD + Schematron outcome
- ValidationResponse: either an input error message or a result
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RuleError:
    """
    Failed Schematron assertion.

    Attributes:
        rule_id: Assertion/rule/pattern id (None for precompiled rule sets without ids)
        test: Assertion test expression
        message: Human-readable failure text
    """
    rule_id: Optional[str]
    test: Optional[str]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'ruleId': self.rule_id, 'test': self.test, 'message': self.message}


@dataclass
class SuppressionInfo:
    """
    Summary of suppression applied to one validation.

    Attributes:
        profile: Resolved profile name (None for ad-hoc suppressions only)
        total_raw_errors: XSD + Schematron errors before suppression
        suppressed_count: Number of removed errors
        suppressed_errors: Removed Schematron errors, followed by removed XSD errors
                           wrapped as RuleError(None, None, text)
    """
    profile: Optional[str]
    total_raw_errors: int = 0
    suppressed_count: int = 0
    suppressed_errors: List[RuleError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'profile': self.profile,
            'totalRawErrors': self.total_raw_errors,
            'suppressedCount': self.suppressed_count,
            'suppressedErrors': [error.to_dict() for error in self.suppressed_errors],
        }


@dataclass
class ValidationResult:
    """
    Outcome of validating one document.

    valid_schema / valid_schematron always reflect the error lists after
    suppression; use the properties rather than storing flags.
    """
    detected_document_type: Optional[str] = None
    applied_xsd: Optional[str] = None
    applied_xsd_path: Optional[str] = None
    applied_schematron: Optional[str] = None
    applied_schematron_path: Optional[str] = None
    schema_validation_errors: List[str] = field(default_factory=list)
    schematron_validation_errors: List[RuleError] = field(default_factory=list)
    configuration_errors: List[str] = field(default_factory=list)
    suppression_info: Optional[SuppressionInfo] = None

    @property
    def valid_schema(self) -> bool:
        return not self.schema_validation_errors

    @property
    def valid_schematron(self) -> bool:
        return not self.schematron_validation_errors

    @property
    def is_valid(self) -> bool:
        return self.valid_schema and self.valid_schematron

    def to_dict(self) -> Dict[str, Any]:
        return {
            'detectedDocumentType': self.detected_document_type,
            'appliedXsd': self.applied_xsd,
            'appliedXsdPath': self.applied_xsd_path,
            'appliedSchematron': self.applied_schematron,
            'appliedSchematronPath': self.applied_schematron_path,
            'validSchema': self.valid_schema,
            'validSchematron': self.valid_schematron,
            'schemaValidationErrors': list(self.schema_validation_errors),
            'schematronValidationErrors': [error.to_dict() for error in self.schematron_validation_errors],
            'configurationErrors': list(self.configuration_errors),
            'suppressionInfo': self.suppression_info.to_dict() if self.suppression_info else None,
        }


@dataclass
class ValidationResponse:
    """Either error_message (input problem) or result is set."""
    error_message: Optional[str] = None
    result: Optional[ValidationResult] = None

    @property
    def success(self) -> bool:
        return self.error_message is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'errorMessage': self.error_message,
            'result': self.result.to_dict() if self.result else None,
        }


__all__ = ['RuleError', 'SuppressionInfo', 'ValidationResult', 'ValidationResponse']
