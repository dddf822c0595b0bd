# Path: gib_validator/engine/schematron_validator.py
"""
Schematron Rule Validator

Evaluates the rule set for a Schematron validation type against a document.

Architecture:
- reload() compiles every present base rule set into a new generation
- Global rules and profile rules are appended to the base source and the
  merged rule set is compiled on demand, cached per
  (generation, type, profile, rules hash)
- UBLTR_MAIN receives the document sub-type as the 'type' stylesheet parameter
  when the stylesheet declares it
- The source file name becomes the document base URI (e-Ledger rules read it)
"""

import hashlib
import re
import time
from typing import Callable, Dict, List, Optional, Sequence

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.engine.asset_cache import AssetCache, GenerationPointer
from gib_validator.engine.asset_store import AssetStore
from gib_validator.engine.schematron_compiler import (
    CompiledRuleSet,
    compile_source,
    extract_errors,
    inject_custom_rules,
    load_precompiled,
)
from gib_validator.exceptions import AssetError, AssetNotFoundError, CustomRuleError
from gib_validator.models.document_types import SchematronValidationType, SCHEMATRON_PATH_MAP
from gib_validator.models.profile import SchematronCustomRule
from gib_validator.models.reload import AssetKind, ReloadResult
from gib_validator.models.validation import RuleError
from gib_validator.constants import (
    AUTO_GENERATED_SCHEMATRON,
    COMPONENT_SCHEMATRON,
    DEFAULT_UBLTR_SCHEMATRON_TYPE,
    LOG_INPUT,
    LOG_OUTPUT,
    LOG_PROCESS,
)

logger = get_logger(__name__, 'engine')

GlobalRulesProvider = Callable[[str], List[SchematronCustomRule]]


def rules_hash(rules: Sequence[SchematronCustomRule]) -> str:
    digest = hashlib.sha1()
    for rule in rules:
        digest.update(repr((rule.context, rule.test, rule.message, rule.id)).encode('utf-8'))
    return digest.hexdigest()[:12]


class SchematronValidator:
    """
    Example:
        validator = SchematronValidator(store, cache, registry.global_rules_for)
        validator.reload()
        errors = validator.validate(xml_bytes, SchematronValidationType.UBLTR_MAIN)
    """

    name = COMPONENT_SCHEMATRON
    kind = AssetKind.SCHEMATRON

    def __init__(
        self,
        store: AssetStore,
        cache: AssetCache,
        global_rules: Optional[GlobalRulesProvider] = None,
        default_ubl_type: str = DEFAULT_UBLTR_SCHEMATRON_TYPE
    ):
        self.store = store
        self.cache = cache
        self.global_rules = global_rules or (lambda type_name: [])
        self.default_ubl_type = default_ubl_type
        self.pointer: GenerationPointer[CompiledRuleSet] = GenerationPointer(AssetKind.SCHEMATRON)

    def loaded_types(self) -> List[SchematronValidationType]:
        return list(self.pointer.current().items)

    # ------------------------------------------------------------------
    # reload
    # ------------------------------------------------------------------

    def reload(self) -> ReloadResult:
        start = time.time()
        items: Dict[SchematronValidationType, CompiledRuleSet] = {}
        errors: List[str] = []

        self.store.clear_auto_generated(AUTO_GENERATED_SCHEMATRON)
        for schematron_type, relative_path in SCHEMATRON_PATH_MAP.items():
            if not self.store.exists(relative_path):
                logger.debug(f"{LOG_PROCESS} Rule set not present for {schematron_type.value}: {relative_path}")
                continue
            try:
                items[schematron_type] = self._compile_base(relative_path)
            except (etree.XMLSyntaxError, etree.XSLTParseError, etree.XSLTApplyError, OSError) as e:
                logger.error(f"Rule set compile failed for {schematron_type.value}: {e}")
                errors.append(f"{schematron_type.value}: {e}")
                continue
            if items[schematron_type].precompiled and self.global_rules(schematron_type.value):
                logger.warning(
                    f"Global rules for {schematron_type.value} ignored: precompiled rule sets cannot be extended"
                )

        if not items and not errors:
            errors.append("No Schematron rule sets found. Run GIB package sync.")

        generation = self.pointer.swap(items, errors)
        self.cache.invalidate(AssetKind.SCHEMATRON)
        duration = int((time.time() - start) * 1000)
        logger.info(f"{LOG_OUTPUT} Schematron generation {generation.number}: {len(items)} loaded, {len(errors)} failed")
        return ReloadResult.from_counts(COMPONENT_SCHEMATRON, len(items), errors, duration)

    def _compile_base(self, relative_path: str) -> CompiledRuleSet:
        path = self.store.resolve_existing(relative_path)
        if path.suffix.lower() in ('.xsl', '.xslt'):
            return load_precompiled(path, relative_path)
        return compile_source(path.read_bytes(), path, relative_path)

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def validate(
        self,
        content: bytes,
        schematron_type: SchematronValidationType,
        custom_rules: Sequence[SchematronCustomRule] = (),
        profile_name: Optional[str] = None,
        ubl_sub_type: Optional[str] = None,
        source_file_name: Optional[str] = None,
        include_global: bool = True
    ) -> List[RuleError]:
        """
        Evaluate the rule set.

        Raises:
            AssetNotFoundError: Rule set for the type is not loaded
            CustomRuleError: Merged custom rules do not compile or evaluate
            AssetError: Base rule set fails at evaluation time
        """
        generation = self.pointer.current()
        compiled = generation.get(schematron_type)
        if compiled is None:
            raise AssetNotFoundError(
                f"{schematron_type.value} Schematron rules could not be loaded. "
                f"Run GIB package sync or check {SCHEMATRON_PATH_MAP[schematron_type]}."
            )

        label = profile_name or 'global'
        if compiled.precompiled:
            if custom_rules:
                raise CustomRuleError(
                    f"Custom rules cannot be injected into precompiled rule set {schematron_type.value}",
                    profile_name,
                )
        else:
            global_rules = self.global_rules(schematron_type.value) if include_global else []
            merged = list(global_rules) + list(custom_rules)
            if merged:
                key = (
                    AssetKind.SCHEMATRON,
                    generation.number,
                    schematron_type.value,
                    profile_name or '',
                    rules_hash(custom_rules),
                    rules_hash(global_rules),
                )
                base = compiled
                compiled = self.cache.get_or_compute(
                    key, lambda: self._compile_with_rules(base, schematron_type, merged, label)
                )

        logger.debug(f"{LOG_INPUT} Schematron {schematron_type.value} ({len(content)} bytes, rules: {label})")
        parser = etree.XMLParser(no_network=True, resolve_entities=False, huge_tree=True)
        try:
            document = etree.fromstring(content, parser, base_url=source_file_name)
        except etree.XMLSyntaxError as e:
            return [RuleError(None, None, f"XML is not well-formed: {e}")]

        params = {}
        if schematron_type is SchematronValidationType.UBLTR_MAIN and 'type' in compiled.params:
            params['type'] = etree.XSLT.strparam(ubl_sub_type or self.default_ubl_type)

        try:
            result = compiled.transform(document, **params)
        except etree.XSLTApplyError as e:
            if compiled is not generation.get(schematron_type):
                raise CustomRuleError(f"Custom rules failed during evaluation ({label}): {e}", profile_name) from e
            raise AssetError(f"{schematron_type.value} rule set evaluation failed: {e}") from e

        errors = extract_errors(result)
        logger.debug(f"{LOG_OUTPUT} Schematron {schematron_type.value}: {len(errors)} errors")
        return errors

    def warm(self, schematron_type: SchematronValidationType, custom_rules: Sequence[SchematronCustomRule],
             profile_name: Optional[str]) -> None:
        """Compile a profile's merged rule set ahead of the first request."""
        generation = self.pointer.current()
        compiled = generation.get(schematron_type)
        if compiled is None or compiled.precompiled:
            return
        global_rules = self.global_rules(schematron_type.value)
        merged = list(global_rules) + list(custom_rules)
        if not merged:
            return
        key = (AssetKind.SCHEMATRON, generation.number, schematron_type.value, profile_name or '',
               rules_hash(custom_rules), rules_hash(global_rules))
        self.cache.get_or_compute(
            key, lambda: self._compile_with_rules(compiled, schematron_type, merged, profile_name or 'global')
        )

    def verify_rules(self, schematron_type: SchematronValidationType,
                     rules: Sequence[SchematronCustomRule], label: str = 'global') -> None:
        """
        Compile rules into the current rule set without caching the result.

        Raises:
            CustomRuleError: The merged rule set does not compile
        """
        compiled = self.pointer.current().get(schematron_type)
        if compiled is None or compiled.precompiled or not rules:
            return
        self._compile_with_rules(compiled, schematron_type, rules, label)

    def _compile_with_rules(
        self,
        base: CompiledRuleSet,
        schematron_type: SchematronValidationType,
        rules: Sequence[SchematronCustomRule],
        label: str
    ) -> CompiledRuleSet:
        try:
            source = inject_custom_rules(base.source, rules, label)
            self.store.write_auto_generated(
                AUTO_GENERATED_SCHEMATRON,
                f"{schematron_type.value}_{re.sub(r'[^A-Za-z0-9_.-]', '_', label)}.sch",
                source,
            )
            compiled = compile_source(source, base.path, base.relative_path)
        except (etree.XMLSyntaxError, etree.XSLTParseError, etree.XSLTApplyError) as e:
            raise CustomRuleError(
                f"Custom Schematron rules for {schematron_type.value} could not be compiled ({label}): {e}",
                None if label == 'global' else label,
            ) from e
        logger.info(f"{LOG_PROCESS} Compiled {schematron_type.value} with {len(rules)} custom rules ({label})")
        return compiled


__all__ = ['SchematronValidator', 'rules_hash']
