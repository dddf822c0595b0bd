# Path: gib_validator/tests/test_validators.py
"""XSD and Schematron validators against the miniature asset tree."""

import pytest

from gib_validator.engine.schema_validator import SchemaValidator, apply_overrides
from gib_validator.engine.schematron_validator import SchematronValidator
from gib_validator.exceptions import AssetNotFoundError, CustomRuleError
from gib_validator.models.document_types import SchemaValidationType, SchematronValidationType
from gib_validator.models.profile import SchematronCustomRule, XsdOverrideRule
from gib_validator.models.reload import ReloadStatus
from gib_validator.models.validation import RuleError

from gib_validator.tests.conftest import (
    INVOICE_DOCUMENT,
    INVOICE_WITHOUT_DATE,
    write_asset,
)

EARCHIVE_STYLESHEET_PATH = 'validator/earchive/schematron/earsiv_schematron.xsl'

# Precompiled rule set in the legacy <Error> output form
EARCHIVE_STYLESHEET = b'''<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform"
                xmlns:earsiv="http://earsiv.efatura.gov.tr">
  <xsl:template match="/">
    <errors>
      <xsl:if test="not(/earsiv:eArsivRaporu/earsiv:baslik)">
        <Error ruleId="EA-001" test="earsiv:baslik">Report header is missing</Error>
      </xsl:if>
    </errors>
  </xsl:template>
</xsl:stylesheet>
'''

EARCHIVE_REPORT = b'<earsiv:eArsivRaporu xmlns:earsiv="http://earsiv.efatura.gov.tr"/>'


@pytest.fixture
def schema_validator(store, cache):
    validator = SchemaValidator(store, cache)
    validator.reload()
    return validator


@pytest.fixture
def schematron_validator(store, cache):
    validator = SchematronValidator(store, cache)
    validator.reload()
    return validator


# ----------------------------------------------------------------------
# XSD
# ----------------------------------------------------------------------

def test_schema_reload_loads_present_schemas(store, cache):
    validator = SchemaValidator(store, cache)
    result = validator.reload()
    assert result.status is ReloadStatus.OK
    assert validator.loaded_types() == [SchemaValidationType.INVOICE]


def test_schema_valid_document(schema_validator):
    assert schema_validator.validate(INVOICE_DOCUMENT, SchemaValidationType.INVOICE) == []


def test_schema_errors_are_humanized(schema_validator):
    errors = schema_validator.validate(INVOICE_WITHOUT_DATE, SchemaValidationType.INVOICE)
    assert len(errors) == 1
    assert errors[0].startswith('Line ')
    assert 'IssueDate' in errors[0]
    assert '{urn:' not in errors[0]


def test_schema_malformed_document(schema_validator):
    errors = schema_validator.validate(b'<Invoice><unclosed></Invoice>', SchemaValidationType.INVOICE)
    assert len(errors) == 1
    assert 'not well-formed' in errors[0]


def test_schema_not_loaded(schema_validator):
    with pytest.raises(AssetNotFoundError, match='EARCHIVE'):
        schema_validator.validate(EARCHIVE_REPORT, SchemaValidationType.EARCHIVE)


def test_schema_override_relaxes_occurrence(schema_validator, store):
    overrides = (XsdOverrideRule('cbc:IssueDate', min_occurs='0'),)
    errors = schema_validator.validate(
        INVOICE_WITHOUT_DATE, SchemaValidationType.INVOICE, overrides, profile_name='no-date'
    )
    assert errors == []
    assert store.exists('auto-generated/schema-overrides/no-date_UBL-Invoice-2.1.xsd')
    # the shared schema is untouched
    assert schema_validator.validate(INVOICE_WITHOUT_DATE, SchemaValidationType.INVOICE) != []


def test_schema_override_compiled_once_per_profile(schema_validator, cache):
    overrides = (XsdOverrideRule('cbc:IssueDate', min_occurs='0'),)
    for _ in range(3):
        schema_validator.validate(INVOICE_WITHOUT_DATE, SchemaValidationType.INVOICE, overrides, 'no-date')
    assert cache.recompute_count == 1


def test_schema_override_invalid_value(schema_validator):
    overrides = (XsdOverrideRule('cbc:IssueDate', max_occurs='abc'),)
    with pytest.raises(CustomRuleError) as excinfo:
        schema_validator.validate(INVOICE_DOCUMENT, SchemaValidationType.INVOICE, overrides, 'broken')
    assert excinfo.value.profile_name == 'broken'


def test_apply_overrides_reports_unmatched(store):
    from lxml import etree

    tree = etree.ElementTree(etree.fromstring(store.read_bytes(
        'validator/ubl-tr-package/schema/maindoc/UBL-Invoice-2.1.xsd'
    )))
    unmatched = apply_overrides(tree, [
        XsdOverrideRule('cbc:Note', max_occurs='unbounded'),
        XsdOverrideRule('cac:Signature', min_occurs='0'),
    ])
    assert unmatched == ['cac:Signature']
    note = [el for el in tree.iter('{http://www.w3.org/2001/XMLSchema}element') if el.get('ref') == 'cbc:Note'][0]
    assert note.get('maxOccurs') == 'unbounded'


# ----------------------------------------------------------------------
# Schematron
# ----------------------------------------------------------------------

def test_schematron_failed_asserts(schematron_validator):
    errors = schematron_validator.validate(INVOICE_DOCUMENT, SchematronValidationType.UBLTR_MAIN)
    assert [error.rule_id for error in errors] == ['R-001', 'R-002']
    assert errors[0].test == 'cbc:Note'
    assert errors[0].message == 'Invoice must carry a note'


def test_schematron_passing_document(schematron_validator):
    assert schematron_validator.validate(INVOICE_WITHOUT_DATE, SchematronValidationType.UBLTR_MAIN) == []


def test_schematron_not_loaded(schematron_validator):
    with pytest.raises(AssetNotFoundError):
        schematron_validator.validate(INVOICE_DOCUMENT, SchematronValidationType.EDEFTER_YEVMIYE)


def test_schematron_custom_rules_appended(schematron_validator, store):
    rules = [SchematronCustomRule('/inv:Invoice', "cbc:IssueDate = '2099-01-01'", 'Issue date must be 2099', 'C-001')]
    errors = schematron_validator.validate(
        INVOICE_DOCUMENT, SchematronValidationType.UBLTR_MAIN, rules, profile_name='future'
    )
    assert [error.rule_id for error in errors] == ['R-001', 'R-002', 'C-001']
    assert store.exists('auto-generated/schematron-rules/UBLTR_MAIN_future.sch')


def test_schematron_global_rules(store, cache):
    global_rule = SchematronCustomRule('/inv:Invoice', 'cbc:Note', 'Global note check', 'G-001')
    validator = SchematronValidator(store, cache, global_rules=lambda type_name: [global_rule])
    validator.reload()

    with_global = validator.validate(INVOICE_DOCUMENT, SchematronValidationType.UBLTR_MAIN)
    without_global = validator.validate(INVOICE_DOCUMENT, SchematronValidationType.UBLTR_MAIN, include_global=False)
    assert [error.rule_id for error in with_global] == ['R-001', 'R-002', 'G-001']
    assert [error.rule_id for error in without_global] == ['R-001', 'R-002']


def test_schematron_broken_custom_rule(schematron_validator):
    rules = [SchematronCustomRule('/inv:Invoice', 'cbc:Note[', 'Broken XPath', 'C-999')]
    with pytest.raises(CustomRuleError) as excinfo:
        schematron_validator.validate(INVOICE_DOCUMENT, SchematronValidationType.UBLTR_MAIN, rules, 'broken')
    assert excinfo.value.profile_name == 'broken'


def test_schematron_malformed_document(schematron_validator):
    errors = schematron_validator.validate(b'<Invoice>', SchematronValidationType.UBLTR_MAIN)
    assert len(errors) == 1
    assert errors[0].rule_id is None
    assert 'not well-formed' in errors[0].message


def test_precompiled_legacy_output(store, cache, assets_root):
    write_asset(assets_root, EARCHIVE_STYLESHEET_PATH, EARCHIVE_STYLESHEET)
    validator = SchematronValidator(store, cache)
    validator.reload()

    errors = validator.validate(EARCHIVE_REPORT, SchematronValidationType.EARCHIVE_REPORT)
    assert errors == [RuleError('EA-001', 'earsiv:baslik', 'Report header is missing')]


def test_precompiled_rejects_custom_rules(store, cache, assets_root):
    write_asset(assets_root, EARCHIVE_STYLESHEET_PATH, EARCHIVE_STYLESHEET)
    validator = SchematronValidator(store, cache)
    validator.reload()

    rules = [SchematronCustomRule('/', 'true()', 'never')]
    with pytest.raises(CustomRuleError):
        validator.validate(EARCHIVE_REPORT, SchematronValidationType.EARCHIVE_REPORT, rules, 'p')


def test_broken_rule_set_reported_by_reload(store, cache, assets_root):
    write_asset(assets_root, 'validator/eledger/schematron/edefter_kebir.sch', b'<not-schematron/>')
    validator = SchematronValidator(store, cache)
    result = validator.reload()
    assert result.status is ReloadStatus.PARTIAL
    assert any('EDEFTER_KEBIR' in error for error in result.errors)
    assert SchematronValidationType.UBLTR_MAIN in validator.loaded_types()
