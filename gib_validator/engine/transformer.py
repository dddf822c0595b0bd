# Path: gib_validator/engine/transformer.py
"""
XSLT Transformer

Renders GIB documents to HTML.

Architecture:
- Template selection: caller-supplied XSLT, then the document's embedded
  XSLT (when requested), then the registered default for the transform type
- A failing caller template falls back to the default and the failure is
  reported in the result
- Default templates are compiled at reload into a generation; edits through
  put/delete swap in a new generation
- Untrusted stylesheets (caller-supplied, embedded) run with file and
  network access denied
"""

import re
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.engine.asset_cache import GenerationPointer
from gib_validator.engine.asset_store import AssetStore
from gib_validator.engine.embedded_xslt import decode_template, extract_embedded_xslt
from gib_validator.engine.watermark import apply_watermark
from gib_validator.exceptions import DocumentParseError, TransformError
from gib_validator.models.document_types import DEFAULT_TEMPLATE_MAP, TransformType
from gib_validator.models.reload import AssetKind, ReloadResult
from gib_validator.models.transform import TransformRequest, TransformResult
from gib_validator.constants import (
    COMPONENT_TEMPLATES,
    DEFAULT_WATERMARK_REPEAT,
    LOG_INPUT,
    LOG_OUTPUT,
    LOG_PROCESS,
)

logger = get_logger(__name__, 'engine')


@dataclass
class CompiledTemplate:
    transform_type: TransformType
    relative_path: str
    transform: etree.XSLT
    lock: threading.Lock = field(default_factory=threading.Lock)

    def apply(self, document) -> str:
        with self.lock:
            return str(self.transform(document))


_DECLARED_ENCODING = re.compile(r'^(\ufeff?\s*<\?xml\b[^>]*?\bencoding\s*=\s*["\'])[^"\']*(["\'])')


def _parser() -> etree.XMLParser:
    return etree.XMLParser(no_network=True, resolve_entities=False, huge_tree=True)


def compile_untrusted(xslt_text: str) -> etree.XSLT:
    """
    Compile a caller-supplied or embedded stylesheet.

    The text is already decoded, so the encoding named in the XML
    declaration (Windows-1254 on legacy templates) is rewritten to UTF-8
    before parsing. The rest of the stylesheet is left as is.

    Raises:
        etree.XMLSyntaxError, etree.XSLTParseError
    """
    normalized = _DECLARED_ENCODING.sub(r'\g<1>UTF-8\g<2>', xslt_text, count=1)
    stylesheet = etree.fromstring(normalized.encode('utf-8'), _parser())
    return etree.XSLT(stylesheet, access_control=etree.XSLTAccessControl.DENY_ALL)


def _render(transform: etree.XSLT, document) -> str:
    return str(transform(document))


class XsltTransformer:
    """
    Example:
        transformer = XsltTransformer(store)
        transformer.reload()
        result = transformer.transform(TransformRequest(xml_bytes, TransformType.INVOICE))
    """

    name = COMPONENT_TEMPLATES
    kind = AssetKind.TEMPLATES

    def __init__(self, store: AssetStore, watermark_repeat: int = DEFAULT_WATERMARK_REPEAT):
        self.store = store
        self.watermark_repeat = watermark_repeat
        self.pointer: GenerationPointer[CompiledTemplate] = GenerationPointer(AssetKind.TEMPLATES)
        self._edit_lock = threading.Lock()

    def loaded_types(self) -> List[TransformType]:
        return list(self.pointer.current().items)

    # ------------------------------------------------------------------
    # reload
    # ------------------------------------------------------------------

    def reload(self) -> ReloadResult:
        start = time.time()
        items: Dict[TransformType, CompiledTemplate] = {}
        errors: List[str] = []
        for transform_type, relative_path in DEFAULT_TEMPLATE_MAP.items():
            if not self.store.exists(relative_path):
                logger.debug(f"{LOG_PROCESS} Default template not present for {transform_type.value}")
                continue
            try:
                items[transform_type] = self._compile_default(transform_type, self.store.read_bytes(relative_path))
            except (etree.XMLSyntaxError, etree.XSLTParseError) as e:
                logger.error(f"Default template compile failed for {transform_type.value}: {e}")
                errors.append(f"{transform_type.value}: {e}")

        generation = self.pointer.swap(items, errors)
        duration = int((time.time() - start) * 1000)
        logger.info(f"{LOG_OUTPUT} Template generation {generation.number}: {len(items)} loaded, {len(errors)} failed")
        return ReloadResult.from_counts(COMPONENT_TEMPLATES, len(items), errors, duration)

    def _compile_default(self, transform_type: TransformType, content: bytes) -> CompiledTemplate:
        stylesheet = etree.fromstring(content, _parser(), base_url=str(self.store.resolve(DEFAULT_TEMPLATE_MAP[transform_type])))
        return CompiledTemplate(transform_type, DEFAULT_TEMPLATE_MAP[transform_type], etree.XSLT(stylesheet))

    # ------------------------------------------------------------------
    # default template management
    # ------------------------------------------------------------------

    @staticmethod
    def template_path(transform_type: TransformType) -> str:
        path = DEFAULT_TEMPLATE_MAP.get(transform_type)
        if path is None:
            raise TransformError(f"{transform_type.value} has no default template slot")
        return path

    def get_default_template(self, transform_type: TransformType) -> bytes:
        """
        Raises:
            AssetNotFoundError: No template stored for the type
        """
        return self.store.read_bytes(self.template_path(transform_type))

    def put_default_template(self, transform_type: TransformType, content: bytes) -> None:
        """
        Store and activate a default template. Content that does not compile is rejected.

        Raises:
            TransformError: Template is not a valid XSLT stylesheet
        """
        path = self.template_path(transform_type)
        try:
            compiled = self._compile_default(transform_type, content)
        except (etree.XMLSyntaxError, etree.XSLTParseError) as e:
            raise TransformError(f"Invalid XSLT for {transform_type.value}: {e}") from e
        with self._edit_lock:
            self.store.write_bytes(path, content)
            current = self.pointer.current()
            items = dict(current.items)
            items[transform_type] = compiled
            self.pointer.swap(items, current.errors)
        logger.info(f"{LOG_OUTPUT} Default template updated: {transform_type.value} ({len(content)} bytes)")

    def delete_default_template(self, transform_type: TransformType) -> bool:
        path = self.template_path(transform_type)
        with self._edit_lock:
            removed = self.store.delete(path)
            current = self.pointer.current()
            if transform_type in current.items:
                items = {k: v for k, v in current.items.items() if k is not transform_type}
                self.pointer.swap(items, current.errors)
        if removed:
            logger.info(f"{LOG_OUTPUT} Default template deleted: {transform_type.value}")
        return removed

    # ------------------------------------------------------------------
    # transform
    # ------------------------------------------------------------------

    def transform(self, request: TransformRequest) -> TransformResult:
        """
        Render a document.

        Raises:
            DocumentParseError: Document is not well-formed XML
            TransformError: No template could render it
        """
        start = time.time()
        logger.info(
            f"{LOG_INPUT} Transform {request.transform_type.value} ({len(request.document)} bytes, "
            f"custom={request.transformer is not None}, embedded={request.use_embedded_xslt})"
        )
        try:
            document = etree.fromstring(request.document, _parser())
        except etree.XMLSyntaxError as e:
            raise DocumentParseError(f"XML document could not be parsed: {e}") from e

        html_content: Optional[str] = None
        default_used = embedded_used = False
        custom_error: Optional[str] = None

        if request.transformer:
            try:
                html_content = _render(compile_untrusted(decode_template(request.transformer)), document)
            except (etree.XMLSyntaxError, etree.XSLTParseError, etree.XSLTApplyError) as e:
                custom_error = str(e) or e.__class__.__name__
                logger.warning(f"Custom XSLT failed, falling back to default: {custom_error}")

        if html_content is None and request.use_embedded_xslt:
            embedded = extract_embedded_xslt(request.document)
            if embedded is None:
                logger.debug(f"{LOG_PROCESS} No embedded XSLT, using default template")
            else:
                try:
                    html_content = _render(compile_untrusted(embedded), document)
                    embedded_used = True
                except (etree.XMLSyntaxError, etree.XSLTParseError, etree.XSLTApplyError) as e:
                    custom_error = f"Embedded XSLT transform failed: {e}"
                    logger.warning(custom_error)

        if html_content is None:
            template = self.pointer.current().get(request.transform_type)
            if template is None:
                raise TransformError(
                    f"{request.transform_type.value}: unsupported transform type or XSLT not loaded"
                )
            try:
                html_content = template.apply(document)
            except etree.XSLTApplyError as e:
                raise TransformError(f"Default {request.transform_type.value} template failed: {e}") from e
            default_used = True

        watermark_applied = False
        if request.watermark_text and request.watermark_text.strip():
            html_content, watermark_applied = apply_watermark(
                html_content, request.watermark_text.strip(), self.watermark_repeat
            )

        result = TransformResult(
            html_content=html_content,
            default_used=default_used,
            embedded_used=embedded_used,
            custom_xslt_error=custom_error,
            duration_ms=int((time.time() - start) * 1000),
            watermark_applied=watermark_applied,
        )
        logger.info(
            f"{LOG_OUTPUT} Transform done: {result.output_size} bytes, default={default_used}, "
            f"embedded={embedded_used}, {result.duration_ms} ms"
        )
        return result


__all__ = ['XsltTransformer', 'CompiledTemplate', 'compile_untrusted']
