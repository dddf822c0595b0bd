# Path: gib_validator/models/transform.py
"""
Transform Request and Result Objects

The rendered body travels separately from its metadata; to_headers()
produces the out-of-band representation.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from gib_validator.models.document_types import TransformType
from gib_validator.constants import (
    HEADER_DEFAULT_USED,
    HEADER_EMBEDDED_USED,
    HEADER_CUSTOM_ERROR,
    HEADER_DURATION_MS,
    HEADER_WATERMARK_APPLIED,
    HEADER_OUTPUT_SIZE,
)


@dataclass
class TransformRequest:
    """
    Attributes:
        document: Raw XML document bytes
        transform_type: Which default template applies
        transformer: Optional caller-supplied XSLT bytes
        watermark_text: Optional overlay text
        use_embedded_xslt: Prefer an XSLT embedded in the document
    """
    document: bytes
    transform_type: TransformType
    transformer: Optional[bytes] = None
    watermark_text: Optional[str] = None
    use_embedded_xslt: bool = False


@dataclass
class TransformResult:
    """
    Rendered output plus selection metadata.

    Attributes:
        html_content: Rendered output
        default_used: Registered default template produced the output
        embedded_used: Template embedded in the document produced the output
        custom_xslt_error: Why the caller-supplied or embedded template was abandoned
        duration_ms: Elapsed time
        watermark_applied: Watermark overlay was inserted
    """
    html_content: str
    default_used: bool = False
    embedded_used: bool = False
    custom_xslt_error: Optional[str] = None
    duration_ms: int = 0
    watermark_applied: bool = False

    @property
    def output_bytes(self) -> bytes:
        return self.html_content.encode('utf-8')

    @property
    def output_size(self) -> int:
        return len(self.output_bytes)

    def to_headers(self) -> Dict[str, str]:
        headers = {
            HEADER_DEFAULT_USED: str(self.default_used).lower(),
            HEADER_EMBEDDED_USED: str(self.embedded_used).lower(),
            HEADER_DURATION_MS: str(self.duration_ms),
            HEADER_WATERMARK_APPLIED: str(self.watermark_applied).lower(),
            HEADER_OUTPUT_SIZE: str(self.output_size),
        }
        if self.custom_xslt_error:
            # Header values must stay on one line
            headers[HEADER_CUSTOM_ERROR] = ' '.join(self.custom_xslt_error.split())
        return headers


__all__ = ['TransformRequest', 'TransformResult']
