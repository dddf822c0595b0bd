# Path: gib_validator/engine/schema_validator.py
"""
XSD Schema Validator

Validates documents against the GIB XSD for their schema type.

Architecture:
- reload() compiles every present XSD into a new generation and swaps it in
- Profile occurrence overrides are applied to a private copy of the main
  schema document, compiled separately and cached per (generation, type, profile, overrides)
- The shared compiled schema is never modified
- Document-shape problems come back as error strings; missing assets raise

lxml XMLSchema objects keep their error log on the instance, so each
compiled schema serialises its validate() calls with its own lock.
"""

import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.engine.asset_cache import AssetCache, GenerationPointer
from gib_validator.engine.asset_store import AssetStore
from gib_validator.engine.schema_resolver import make_schema_parser
from gib_validator.engine.xsd_humanizer import humanize
from gib_validator.exceptions import AssetNotFoundError, CustomRuleError
from gib_validator.models.document_types import SchemaValidationType, XSD_PATH_MAP, file_name
from gib_validator.models.profile import XsdOverrideRule
from gib_validator.models.reload import AssetKind, ReloadResult
from gib_validator.constants import (
    AUTO_GENERATED_SCHEMA,
    COMPONENT_SCHEMAS,
    LOG_INPUT,
    LOG_OUTPUT,
    LOG_PROCESS,
)

logger = get_logger(__name__, 'engine')

XSD_NS = 'http://www.w3.org/2001/XMLSchema'


@dataclass
class CompiledSchema:
    """
    One compiled XSD.

    Attributes:
        source: Main schema bytes as loaded (overrides start from these)
        path: Absolute path, used as base URL for relative imports
    """
    schema_type: SchemaValidationType
    relative_path: str
    path: Path
    source: bytes
    schema: etree.XMLSchema
    lock: threading.Lock = field(default_factory=threading.Lock)

    def validate(self, document) -> List[Tuple[str, int, int]]:
        with self.lock:
            self.schema.validate(document)
            return [(entry.message, entry.line, entry.column) for entry in self.schema.error_log]


def _document_parser() -> etree.XMLParser:
    return etree.XMLParser(no_network=True, resolve_entities=False, huge_tree=True)


def _safe_token(value: str) -> str:
    return re.sub(r'[^A-Za-z0-9_.-]', '_', value)


class SchemaValidator:
    """
    Example:
        validator = SchemaValidator(store, cache)
        validator.reload()
        errors = validator.validate(xml_bytes, SchemaValidationType.INVOICE)
    """

    name = COMPONENT_SCHEMAS
    kind = AssetKind.SCHEMA

    def __init__(self, store: AssetStore, cache: AssetCache):
        self.store = store
        self.cache = cache
        self.pointer: GenerationPointer[CompiledSchema] = GenerationPointer(AssetKind.SCHEMA)

    def loaded_types(self) -> List[SchemaValidationType]:
        return list(self.pointer.current().items)

    # ------------------------------------------------------------------
    # reload
    # ------------------------------------------------------------------

    def reload(self) -> ReloadResult:
        start = time.time()
        items: Dict[SchemaValidationType, CompiledSchema] = {}
        errors: List[str] = []
        missing = 0

        self.store.clear_auto_generated(AUTO_GENERATED_SCHEMA)
        for schema_type, relative_path in XSD_PATH_MAP.items():
            if not self.store.exists(relative_path):
                missing += 1
                logger.debug(f"{LOG_PROCESS} XSD not present for {schema_type.value}: {relative_path}")
                continue
            try:
                items[schema_type] = self._compile_base(schema_type, relative_path)
            except (etree.XMLSyntaxError, etree.XMLSchemaParseError, OSError) as e:
                logger.error(f"XSD compile failed for {schema_type.value}: {e}")
                errors.append(f"{schema_type.value}: {e}")

        if not items and not errors:
            errors.append("No XSD schemas found. Run GIB package sync.")

        generation = self.pointer.swap(items, errors)
        self.cache.invalidate(AssetKind.SCHEMA)
        duration = int((time.time() - start) * 1000)
        logger.info(
            f"{LOG_OUTPUT} XSD generation {generation.number}: {len(items)} loaded, "
            f"{len(errors)} failed, {missing} not present"
        )
        return ReloadResult.from_counts(COMPONENT_SCHEMAS, len(items), errors, duration)

    def _compile_base(self, schema_type: SchemaValidationType, relative_path: str) -> CompiledSchema:
        path = self.store.resolve_existing(relative_path)
        source = path.read_bytes()
        tree = etree.ElementTree(
            etree.fromstring(source, make_schema_parser(path), base_url=str(path))
        )
        schema = etree.XMLSchema(tree)
        return CompiledSchema(schema_type, relative_path, path, source, schema)

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def validate(
        self,
        content: bytes,
        schema_type: SchemaValidationType,
        overrides: Sequence[XsdOverrideRule] = (),
        profile_name: Optional[str] = None
    ) -> List[str]:
        """
        Validate a document.

        Returns:
            Humanized schema error strings (empty when valid)

        Raises:
            AssetNotFoundError: Schema for the type is not loaded
            CustomRuleError: Profile overrides produce an invalid schema
        """
        generation = self.pointer.current()
        compiled = generation.get(schema_type)
        if compiled is None:
            raise AssetNotFoundError(
                f"{schema_type.value} XSD schema is not loaded "
                f"({XSD_PATH_MAP[schema_type]}). Run GIB package sync or reload."
            )

        if overrides:
            key = (
                AssetKind.SCHEMA,
                generation.number,
                schema_type.value,
                profile_name or '',
                tuple(sorted(rule.cache_token() for rule in overrides)),
            )
            compiled = self.cache.get_or_compute(
                key, lambda: self._compile_override(compiled, overrides, profile_name)
            )

        logger.debug(f"{LOG_INPUT} XSD validation {schema_type.value} ({len(content)} bytes)")
        try:
            document = etree.fromstring(content, _document_parser())
        except etree.XMLSyntaxError as e:
            line, column = (e.position if e.position else (None, None))
            return [humanize(f"XML is not well-formed: {e.msg}", line, column)]

        return [humanize(message, line, column) for message, line, column in compiled.validate(document)]

    # ------------------------------------------------------------------
    # overrides
    # ------------------------------------------------------------------

    def _compile_override(
        self,
        base: CompiledSchema,
        overrides: Sequence[XsdOverrideRule],
        profile_name: Optional[str]
    ) -> CompiledSchema:
        root = etree.fromstring(base.source, make_schema_parser(base.path), base_url=str(base.path))
        tree = etree.ElementTree(root)
        unmatched = apply_overrides(tree, overrides)
        for element in unmatched:
            logger.warning(
                f"XSD override for '{element}' matched no element reference in "
                f"{base.relative_path} (profile: {profile_name})"
            )

        label = profile_name or 'anonymous'
        root.addprevious(etree.Comment(
            f" Auto-generated XSD override. profile: {label}, source: {base.relative_path}, "
            f"generated: {datetime.now().isoformat(timespec='seconds')}, "
            f"overrides: {', '.join(rule.cache_token() for rule in overrides)} "
        ))
        self.store.write_auto_generated(
            AUTO_GENERATED_SCHEMA,
            f"{_safe_token(label)}_{file_name(base.relative_path)}",
            etree.tostring(tree, xml_declaration=True, encoding='UTF-8', pretty_print=True),
        )

        try:
            schema = etree.XMLSchema(tree)
        except etree.XMLSchemaParseError as e:
            raise CustomRuleError(
                f"XSD overrides of profile '{label}' produce an invalid {base.schema_type.value} schema: {e}",
                profile_name,
            ) from e

        logger.info(
            f"{LOG_PROCESS} Compiled {base.schema_type.value} schema with "
            f"{len(overrides) - len(unmatched)} overrides for profile '{label}'"
        )
        return CompiledSchema(base.schema_type, base.relative_path, base.path, base.source, schema)


def apply_overrides(tree, overrides: Sequence[XsdOverrideRule]) -> List[str]:
    """
    Set minOccurs/maxOccurs on xs:element references matching each override.

    Matching compares the ref attribute exactly (e.g. 'cac:Signature').

    Returns:
        Override elements that matched nothing
    """
    by_element = {rule.element: rule for rule in overrides}
    matched = set()
    for element in tree.iter(f'{{{XSD_NS}}}element'):
        rule = by_element.get(element.get('ref'))
        if rule is None:
            continue
        if rule.min_occurs is not None:
            element.set('minOccurs', rule.min_occurs)
        if rule.max_occurs is not None:
            element.set('maxOccurs', rule.max_occurs)
        matched.add(rule.element)
    return [element for element in by_element if element not in matched]


__all__ = ['SchemaValidator', 'CompiledSchema', 'apply_overrides', 'XSD_NS']
