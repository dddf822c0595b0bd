# Path: gib_validator/tests/test_suppression.py
"""Suppression matching modes, scope filtering and request-level suppressions."""

import pytest

from gib_validator.engine.suppression import RegexCache, SuppressionEngine, parse_adhoc_suppressions
from gib_validator.models.profile import MatchMode, SuppressionRule
from gib_validator.models.validation import RuleError

ERRORS = [
    RuleError('R-001', 'cbc:Note', 'Invoice must carry a note'),
    RuleError('R-0010', 'cbc:ProfileID', 'ProfileID is required'),
    RuleError('R-002', 'string-length(cbc:ID) = 16', 'Invoice ID must be 16 characters long'),
    RuleError(None, None, 'Free text error without an id'),
]

ACTIVE = {'INVOICE', 'UBLTR_MAIN'}


@pytest.fixture
def engine():
    return SuppressionEngine(RegexCache())


def _ids(errors):
    return [error.rule_id for error in errors]


def test_rule_id_equals_is_exact(engine):
    rules = [SuppressionRule(MatchMode.RULE_ID_EQUALS, 'R-001')]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert _ids(suppressed) == ['R-001']
    assert _ids(kept) == ['R-0010', 'R-002', None]


def test_rule_id_regex_searches(engine):
    rules = [SuppressionRule(MatchMode.RULE_ID, 'R-001')]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert _ids(suppressed) == ['R-001', 'R-0010']


def test_test_modes(engine):
    exact = [SuppressionRule(MatchMode.TEST_EQUALS, 'cbc:Note')]
    regex = [SuppressionRule(MatchMode.TEST, r'string-length\(')]
    assert _ids(engine.filter_rule_errors(ERRORS, exact, ACTIVE)[1]) == ['R-001']
    assert _ids(engine.filter_rule_errors(ERRORS, regex, ACTIVE)[1]) == ['R-002']


def test_text_mode_matches_message(engine):
    rules = [SuppressionRule(MatchMode.TEXT, 'without an id')]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert [error.message for error in suppressed] == ['Free text error without an id']
    assert len(kept) == 3


def test_missing_field_never_matches(engine):
    rules = [SuppressionRule(MatchMode.RULE_ID, '.*')]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert _ids(kept) == [None]


def test_any_matching_rule_suppresses(engine):
    rules = [
        SuppressionRule(MatchMode.RULE_ID_EQUALS, 'R-002'),
        SuppressionRule(MatchMode.TEXT, 'note'),
    ]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert _ids(suppressed) == ['R-001', 'R-002']


def test_scope_limits_rules(engine):
    scoped_out = [SuppressionRule(MatchMode.RULE_ID_EQUALS, 'R-001', scope=frozenset({'EARCHIVE_REPORT'}))]
    scoped_in = [SuppressionRule(MatchMode.RULE_ID_EQUALS, 'R-001', scope=frozenset({'INVOICE'}))]
    assert engine.filter_rule_errors(ERRORS, scoped_out, ACTIVE)[1] == []
    assert _ids(engine.filter_rule_errors(ERRORS, scoped_in, ACTIVE)[1]) == ['R-001']


def test_filtering_is_idempotent(engine):
    rules = [SuppressionRule(MatchMode.RULE_ID, '^R-00[12]$')]
    kept, _ = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    kept_again, suppressed_again = engine.filter_rule_errors(kept, rules, ACTIVE)
    assert kept_again == kept
    assert suppressed_again == []


def test_no_rules_keeps_everything(engine):
    kept, suppressed = engine.filter_rule_errors(ERRORS, [], ACTIVE)
    assert kept == ERRORS
    assert suppressed == []


def test_schema_errors_only_use_text_rules(engine):
    errors = ['Element cbc:IssueDate is missing', 'Value is not a valid date']
    rules = [
        SuppressionRule(MatchMode.RULE_ID, 'IssueDate'),
        SuppressionRule(MatchMode.TEXT, 'valid date'),
    ]
    kept, suppressed = engine.filter_schema_errors(errors, rules, ACTIVE)
    assert kept == ['Element cbc:IssueDate is missing']
    assert suppressed == ['Value is not a valid date']


def test_invalid_regex_is_skipped():
    cache = RegexCache()
    engine = SuppressionEngine(cache)
    rules = [SuppressionRule(MatchMode.RULE_ID, '(unclosed')]
    kept, suppressed = engine.filter_rule_errors(ERRORS, rules, ACTIVE)
    assert suppressed == []
    assert cache.get('(unclosed') is None


def test_regex_cache_reuses_and_clears():
    cache = RegexCache()
    first = cache.get('R-0+1')
    assert cache.get('R-0+1') is first
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_empty_shared_cache_is_used():
    cache = RegexCache()
    engine = SuppressionEngine(cache)
    assert engine.regex_cache is cache
    engine.filter_rule_errors(ERRORS, [SuppressionRule(MatchMode.RULE_ID, 'R-0+1')], ACTIVE)
    assert len(cache) == 1


def test_regex_cache_evicts_least_recently_used():
    cache = RegexCache(max_entries=2)
    first = cache.get('a+')
    cache.get('b+')
    assert cache.get('a+') is first
    cache.get('c+')
    assert len(cache) == 2
    # b+ was the least recently used, a+ survives
    assert cache.get('a+') is first
    assert len(cache) == 2


def test_adhoc_suppressions_parse():
    rules = parse_adhoc_suppressions(' R-001 , test:cbc:Note, text:Sign.*ture ,, ')
    assert [(rule.match, rule.pattern) for rule in rules] == [
        (MatchMode.RULE_ID_EQUALS, 'R-001'),
        (MatchMode.TEST_EQUALS, 'cbc:Note'),
        (MatchMode.TEXT, 'Sign.*ture'),
    ]


def test_adhoc_suppressions_skip_bad_tokens():
    too_long = 'X' * 501
    rules = parse_adhoc_suppressions(f'text:(unclosed,test:,{too_long},R-002')
    assert [(rule.match, rule.pattern) for rule in rules] == [(MatchMode.RULE_ID_EQUALS, 'R-002')]


def test_adhoc_suppressions_empty():
    assert parse_adhoc_suppressions(None) == []
    assert parse_adhoc_suppressions('') == []
