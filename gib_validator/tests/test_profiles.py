# Path: gib_validator/tests/test_profiles.py
"""Profile model parsing, inheritance resolution and the YAML-backed registry."""

import pytest
import yaml

from gib_validator.engine.profiles import ProfileRegistry, resolve_profile
from gib_validator.exceptions import (
    CyclicProfileError,
    ProfileConflictError,
    ProfileError,
    ProfileNotFoundError,
)
from gib_validator.models.profile import (
    MatchMode,
    Profile,
    SchematronCustomRule,
    SuppressionRule,
)
from gib_validator.models.reload import ReloadStatus

PROFILES_YAML = {
    'schematron-rules': {
        'UBLTR_MAIN': [
            {'context': '/inv:Invoice', 'test': 'cbc:ID', 'message': 'ID required', 'id': 'G-001'},
        ],
    },
    'profiles': {
        'base': {
            'description': 'Shared suppressions',
            'suppressions': [{'match': 'ruleIdEquals', 'pattern': 'R-001'}],
            'xsd-overrides': {'INVOICE': [{'element': 'cbc:IssueDate', 'minOccurs': 0}]},
        },
        'lenient': {
            'extends': 'base',
            'suppressions': [{'match': 'text', 'pattern': 'Signature', 'scope': ['UBLTR_MAIN']}],
            'xsd-overrides': {'invoice': [{'element': 'cbc:IssueDate', 'minOccurs': 1}]},
            'schematron-rules': {
                'UBLTR_MAIN': [{'context': '/inv:Invoice', 'test': 'cbc:Note', 'message': 'Note required'}],
            },
        },
    },
}


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding='utf-8')


@pytest.fixture
def loaded_registry(tmp_path):
    profiles_file = tmp_path / 'validation-profiles.yml'
    _write(profiles_file, PROFILES_YAML)
    registry = ProfileRegistry(profiles_file)
    registry.reload()
    return registry


def test_from_dict_parses_every_section():
    profile = Profile.from_dict('lenient', PROFILES_YAML['profiles']['lenient'])
    assert profile.extends == 'base'
    assert profile.suppressions[0].match is MatchMode.TEXT
    assert profile.suppressions[0].scope == frozenset({'UBLTR_MAIN'})
    # type keys are normalised to upper case
    assert list(profile.xsd_overrides) == ['INVOICE']
    assert profile.xsd_overrides['INVOICE'][0].min_occurs == '1'
    assert profile.schematron_rules['UBLTR_MAIN'][0].test == 'cbc:Note'


def test_to_dict_round_trips_through_yaml_shape():
    profile = Profile.from_dict('base', PROFILES_YAML['profiles']['base'])
    assert Profile.from_dict('base', profile.to_dict()) == profile


def test_match_mode_defaults_to_rule_id():
    assert SuppressionRule.from_dict({'pattern': 'R-0.*'}).match is MatchMode.RULE_ID


def test_empty_pattern_rejected():
    with pytest.raises(ValueError):
        SuppressionRule(MatchMode.RULE_ID, '')


def test_unknown_match_mode_rejected():
    with pytest.raises(ValueError, match='Unknown suppression match'):
        SuppressionRule.from_dict({'match': 'regex', 'pattern': 'x'})


def test_inheritance_is_union_with_ancestors_first(loaded_registry):
    resolved = loaded_registry.resolve('lenient')
    assert resolved.chain == ('base', 'lenient')
    assert [rule.pattern for rule in resolved.suppressions] == ['R-001', 'Signature']
    # nearest profile wins for the same element
    overrides = resolved.overrides_for('INVOICE')
    assert len(overrides) == 1
    assert overrides[0].min_occurs == '1'
    assert [rule.test for rule in resolved.rules_for('UBLTR_MAIN')] == ['cbc:Note']


def test_resolve_blank_name_is_empty_profile(loaded_registry):
    assert loaded_registry.resolve(None).is_empty
    assert loaded_registry.resolve('  ').is_empty


def test_resolve_unknown_profile(loaded_registry):
    with pytest.raises(ProfileNotFoundError):
        loaded_registry.resolve('missing')


def test_two_profile_cycle_detected():
    profiles = {
        'a': Profile('a', extends='b'),
        'b': Profile('b', extends='a'),
    }
    with pytest.raises(CyclicProfileError) as excinfo:
        resolve_profile(profiles, 'a')
    assert excinfo.value.chain == ['a', 'b', 'a']


def test_missing_parent_reported():
    with pytest.raises(ProfileNotFoundError, match="extends unknown profile 'ghost'"):
        resolve_profile({'child': Profile('child', extends='ghost')}, 'child')


def test_reload_reports_broken_profiles_as_partial(tmp_path):
    profiles_file = tmp_path / 'profiles.yml'
    _write(profiles_file, {'profiles': {
        'good': {},
        'loop-a': {'extends': 'loop-b'},
        'loop-b': {'extends': 'loop-a'},
    }})
    registry = ProfileRegistry(profiles_file)
    result = registry.reload()
    assert result.status is ReloadStatus.PARTIAL
    assert registry.resolve('good').name == 'good'


def test_reload_without_file_is_ok(tmp_path):
    registry = ProfileRegistry(tmp_path / 'absent.yml')
    result = registry.reload()
    assert result.status is ReloadStatus.OK
    assert registry.list_profiles() == []


def test_unreadable_file_keeps_previous_state(loaded_registry):
    loaded_registry.profiles_file.write_text('profiles: [unclosed', encoding='utf-8')
    result = loaded_registry.reload()
    assert result.status is ReloadStatus.FAILED
    assert loaded_registry.exists('lenient')


def test_global_rules_loaded(loaded_registry):
    rules = loaded_registry.global_rules_for('UBLTR_MAIN')
    assert rules == [SchematronCustomRule('/inv:Invoice', 'cbc:ID', 'ID required', 'G-001')]
    assert loaded_registry.global_rules_for('EARCHIVE_REPORT') == []


def test_save_persists_and_notifies(loaded_registry):
    calls = []
    loaded_registry.add_listener(lambda: calls.append(True))
    loaded_registry.save(Profile('strict', description='No suppressions'))

    reopened = ProfileRegistry(loaded_registry.profiles_file)
    reopened.reload()
    assert reopened.get('strict').description == 'No suppressions'
    # global rules survive a profile edit
    assert len(reopened.global_rules_for('UBLTR_MAIN')) == 1
    assert calls == [True]


def test_save_replaces_cached_resolution(loaded_registry):
    assert len(loaded_registry.resolve('lenient').suppressions) == 2
    loaded_registry.save(Profile('lenient', extends='base'))
    assert len(loaded_registry.resolve('lenient').suppressions) == 1


def test_save_create_only_conflict(loaded_registry):
    with pytest.raises(ProfileConflictError):
        loaded_registry.save(Profile('base'), create_only=True)


def test_save_rejects_cycle(loaded_registry):
    with pytest.raises(CyclicProfileError):
        loaded_registry.save(Profile('base', extends='lenient'))
    assert loaded_registry.get('base').extends is None


@pytest.mark.parametrize('name', ['', '-leading-dash', 'has space', 'a/b'])
def test_save_rejects_invalid_names(loaded_registry, name):
    with pytest.raises(ProfileError, match='Invalid profile name'):
        loaded_registry.save(Profile(name))


def test_save_rejects_invalid_regex(loaded_registry):
    profile = Profile('broken', suppressions=[SuppressionRule(MatchMode.RULE_ID, '(unclosed')])
    with pytest.raises(ProfileError, match='Invalid suppression pattern'):
        loaded_registry.save(profile)


def test_exact_patterns_are_not_compiled(loaded_registry):
    profile = Profile('literal', suppressions=[SuppressionRule(MatchMode.RULE_ID_EQUALS, '(unclosed')])
    assert loaded_registry.save(profile).name == 'literal'


def test_delete_extended_profile_conflicts(loaded_registry):
    with pytest.raises(ProfileConflictError, match='lenient'):
        loaded_registry.delete('base')


def test_delete_leaf_then_parent(loaded_registry):
    loaded_registry.delete('lenient')
    loaded_registry.delete('base')
    assert loaded_registry.list_profiles() == []


def test_delete_unknown_profile(loaded_registry):
    with pytest.raises(ProfileNotFoundError):
        loaded_registry.delete('missing')


def test_put_and_delete_global_rules(loaded_registry):
    rule = SchematronCustomRule('/inv:Invoice', 'cbc:IssueDate', 'Date required')
    loaded_registry.put_global_rules('ubltr_main', [rule])
    assert loaded_registry.global_rules_for('UBLTR_MAIN') == [rule]

    loaded_registry.delete_global_rules('UBLTR_MAIN')
    assert loaded_registry.global_rules() == {}


def test_incomplete_global_rule_rejected(loaded_registry):
    with pytest.raises(ProfileError):
        loaded_registry.put_global_rules('UBLTR_MAIN', [SchematronCustomRule('/inv:Invoice', '', 'x')])
