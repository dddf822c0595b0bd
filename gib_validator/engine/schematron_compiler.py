# Path: gib_validator/engine/schematron_compiler.py
"""
Schematron Compiler

Turns ISO Schematron sources into executable XSLT and reads their output.

Architecture:
- Source rule sets (.xml/.sch) go through the ISO pipeline shipped with lxml:
  iso_dsdl_include -> iso_abstract_expand -> iso_svrl_for_xslt1 -> etree.XSLT
- Precompiled rule sets (.xsl) are loaded directly
- Custom assertions are appended as one extra pattern, grouped by context
- Output is either SVRL or the legacy <Error ruleId=".." test="..">text</Error> form

The ISO pipeline in lxml produces XSLT 1.0 stylesheets, so rule sets
relying on XPath 2.0 functions fail to compile and are reported by reload.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence

from lxml import etree
from lxml.isoschematron import iso_abstract_expand, iso_dsdl_include, iso_svrl_for_xslt1

from gib_validator.core.logger import get_logger
from gib_validator.models.profile import SchematronCustomRule
from gib_validator.models.validation import RuleError

logger = get_logger(__name__, 'engine')

SCHEMATRON_NS = 'http://purl.oclc.org/dsdl/schematron'
SVRL_NS = 'http://purl.oclc.org/dsdl/svrl'
XSL_NS = 'http://www.w3.org/1999/XSL/Transform'

_SVRL_FAILURES = (f'{{{SVRL_NS}}}failed-assert', f'{{{SVRL_NS}}}successful-report')


@dataclass
class CompiledRuleSet:
    """
    Executable rule set.

    Attributes:
        source: Schematron source bytes (None for precompiled stylesheets)
        path: Absolute path, base URL for includes
        params: Top-level xsl:param names the stylesheet declares
        precompiled: Loaded from an .xsl; custom rules cannot be injected
    """
    relative_path: str
    path: Path
    transform: etree.XSLT
    params: FrozenSet[str]
    source: Optional[bytes] = None
    precompiled: bool = False


def _secure_parser() -> etree.XMLParser:
    return etree.XMLParser(no_network=True, resolve_entities=False)


def _declared_params(stylesheet) -> FrozenSet[str]:
    root = stylesheet.getroot() if hasattr(stylesheet, 'getroot') else stylesheet
    return frozenset(p.get('name') for p in root.findall(f'{{{XSL_NS}}}param') if p.get('name'))


def compile_source(source: bytes, path: Path, relative_path: str) -> CompiledRuleSet:
    """
    Compile a Schematron source document.

    Raises:
        etree.XMLSyntaxError, etree.XSLTParseError, etree.XSLTApplyError
    """
    document = etree.fromstring(source, _secure_parser(), base_url=str(path))
    if document.tag != f'{{{SCHEMATRON_NS}}}schema':
        raise etree.XSLTParseError(f"Not an ISO Schematron schema: root is {document.tag}")
    included = iso_dsdl_include(document)
    expanded = iso_abstract_expand(included)
    stylesheet = iso_svrl_for_xslt1(expanded)
    transform = etree.XSLT(stylesheet)
    return CompiledRuleSet(
        relative_path=relative_path,
        path=path,
        transform=transform,
        params=_declared_params(stylesheet),
        source=source,
    )


def load_precompiled(path: Path, relative_path: str) -> CompiledRuleSet:
    """Load an already generated validation stylesheet."""
    stylesheet = etree.parse(str(path), _secure_parser())
    transform = etree.XSLT(stylesheet)
    return CompiledRuleSet(
        relative_path=relative_path,
        path=path,
        transform=transform,
        params=_declared_params(stylesheet),
        precompiled=True,
    )


def inject_custom_rules(source: bytes, rules: Sequence[SchematronCustomRule], label: str) -> bytes:
    """
    Append custom assertions to a Schematron source as pattern 'custom-rules-<label>'.

    Rules sharing a context become asserts of one sch:rule, in first-seen order.
    Incomplete rules are skipped.
    """
    root = etree.fromstring(source, _secure_parser())
    grouped = OrderedDict()
    for rule in rules:
        if not rule.is_complete():
            logger.warning(f"Skipping incomplete custom rule ({label}): context={rule.context!r}, test={rule.test!r}")
            continue
        grouped.setdefault(rule.context, []).append(rule)

    root.append(etree.Comment(
        f" Custom Schematron rules. profile: {label}, "
        f"generated: {datetime.now().isoformat(timespec='seconds')}, {len(rules)} assertion(s) "
    ))
    pattern = etree.SubElement(root, f'{{{SCHEMATRON_NS}}}pattern', id=f'custom-rules-{_id_token(label)}')
    for context, context_rules in grouped.items():
        rule_element = etree.SubElement(pattern, f'{{{SCHEMATRON_NS}}}rule', context=context)
        for rule in context_rules:
            assertion = etree.SubElement(rule_element, f'{{{SCHEMATRON_NS}}}assert', test=rule.test)
            if rule.id:
                assertion.set('id', rule.id)
            assertion.text = rule.message

    logger.debug(f"Injected {sum(len(r) for r in grouped.values())} custom assertions in {len(grouped)} contexts ({label})")
    return etree.tostring(root, xml_declaration=True, encoding='UTF-8', pretty_print=True)


def _id_token(label: str) -> str:
    return ''.join(ch if ch.isalnum() or ch in '-_.' else '_' for ch in label) or 'anonymous'


def _text(element) -> str:
    return ' '.join(''.join(element.itertext()).split())


def extract_errors(result) -> List[RuleError]:
    """
    RuleErrors from a rule-set transform result.

    SVRL: each failed-assert/successful-report becomes one error; its rule id is
    the assertion id, else the enclosing fired-rule id, else the active-pattern id.
    Legacy: every <Error> element becomes one error. Text output that is neither
    becomes a single error carrying the whole text.
    """
    root = result.getroot()
    if root is None:
        text = str(result).strip()
        return [RuleError(None, None, text)] if text else []

    if root.tag == f'{{{SVRL_NS}}}schematron-output':
        errors = []
        pattern_id = rule_id = None
        for child in root:
            if child.tag == f'{{{SVRL_NS}}}active-pattern':
                pattern_id, rule_id = child.get('id'), None
            elif child.tag == f'{{{SVRL_NS}}}fired-rule':
                rule_id = child.get('id')
            elif child.tag in _SVRL_FAILURES:
                text_element = child.find(f'{{{SVRL_NS}}}text')
                message = _text(text_element if text_element is not None else child)
                errors.append(RuleError(child.get('id') or rule_id or pattern_id, child.get('test'), message))
        return errors

    legacy = [el for el in root.iter() if isinstance(el.tag, str) and etree.QName(el).localname == 'Error']
    if legacy:
        return [RuleError(el.get('ruleId') or None, el.get('test') or None, _text(el)) for el in legacy]

    text = _text(root)
    return [RuleError(None, None, text)] if text else []


__all__ = [
    'CompiledRuleSet',
    'compile_source',
    'load_precompiled',
    'inject_custom_rules',
    'extract_errors',
    'SCHEMATRON_NS',
    'SVRL_NS',
]
