# Path: gib_validator/models/profile.py
"""
Validation Profile Models

Named bundles of suppression rules, XSD occurrence overrides and
extra Schematron assertions, with single-parent inheritance.

Architecture:
- SuppressionRule / XsdOverrideRule / SchematronCustomRule: leaf rules
- Profile: one stored profile as written by an operator
- ResolvedProfile: immutable, inheritance-flattened view used by validation
- YAML shape conversion lives here so the store and the API agree on it
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class MatchMode(Enum):
    """
    Which error field a suppression rule inspects and how.

    Regex modes search anywhere in the field; Equals modes compare exactly.
    """
    RULE_ID = 'ruleId'
    RULE_ID_EQUALS = 'ruleIdEquals'
    TEST = 'test'
    TEST_EQUALS = 'testEquals'
    TEXT = 'text'

    @property
    def is_exact(self) -> bool:
        return self in (MatchMode.RULE_ID_EQUALS, MatchMode.TEST_EQUALS)

    @property
    def target_field(self) -> str:
        if self in (MatchMode.RULE_ID, MatchMode.RULE_ID_EQUALS):
            return 'rule_id'
        if self in (MatchMode.TEST, MatchMode.TEST_EQUALS):
            return 'test'
        return 'message'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'MatchMode':
        if value is None or value == '':
            return cls.RULE_ID
        for mode in cls:
            if mode.value == value:
                return mode
        valid = ', '.join(mode.value for mode in cls)
        raise ValueError(f"Unknown suppression match '{value}'. Valid values: {valid}")


@dataclass(frozen=True)
class SuppressionRule:
    """
    Filter that removes matching validation errors.

    Attributes:
        match: Field/mode selector
        pattern: Regex for non-Equals modes, literal for Equals modes
        scope: Document/rule-set type names the rule applies to (empty = all)
        description: Free text shown to operators
    """
    match: MatchMode
    pattern: str
    scope: FrozenSet[str] = frozenset()
    description: Optional[str] = None

    def __post_init__(self):
        if not self.pattern:
            raise ValueError("Suppression pattern must not be empty")

    def applies_to(self, active_types) -> bool:
        return not self.scope or bool(self.scope & set(active_types))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'match': self.match.value, 'pattern': self.pattern}
        if self.scope:
            data['scope'] = sorted(self.scope)
        if self.description:
            data['description'] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SuppressionRule':
        scope = data.get('scope') or []
        if isinstance(scope, str):
            scope = [scope]
        return cls(
            match=MatchMode.parse(data.get('match')),
            pattern=str(data.get('pattern') or ''),
            scope=frozenset(str(s).strip() for s in scope if str(s).strip()),
            description=data.get('description'),
        )


@dataclass(frozen=True)
class XsdOverrideRule:
    """
    Occurrence override for one element reference in an XSD.

    Attributes:
        element: Qualified reference as written in the schema (e.g. 'cac:Signature')
        min_occurs: New minOccurs value
        max_occurs: New maxOccurs value ('unbounded' allowed)
    """
    element: str
    min_occurs: Optional[str] = None
    max_occurs: Optional[str] = None

    def __post_init__(self):
        if not self.element:
            raise ValueError("XSD override element must not be empty")
        if self.min_occurs is None and self.max_occurs is None:
            raise ValueError(f"XSD override for '{self.element}' needs minOccurs or maxOccurs")

    def cache_token(self) -> str:
        return f"{self.element}:min={self.min_occurs}:max={self.max_occurs}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'element': self.element}
        if self.min_occurs is not None:
            data['minOccurs'] = self.min_occurs
        if self.max_occurs is not None:
            data['maxOccurs'] = self.max_occurs
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'XsdOverrideRule':
        min_occurs = data.get('minOccurs')
        max_occurs = data.get('maxOccurs')
        return cls(
            element=str(data.get('element') or ''),
            min_occurs=None if min_occurs is None else str(min_occurs),
            max_occurs=None if max_occurs is None else str(max_occurs),
        )


@dataclass(frozen=True)
class SchematronCustomRule:
    """Extra assertion injected into a rule set."""
    context: str
    test: str
    message: str
    id: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.context and self.context.strip()
                    and self.test and self.test.strip()
                    and self.message and self.message.strip())

    def to_dict(self) -> Dict[str, Any]:
        data = {'context': self.context, 'test': self.test, 'message': self.message}
        if self.id:
            data['id'] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchematronCustomRule':
        return cls(
            context=str(data.get('context') or ''),
            test=str(data.get('test') or ''),
            message=str(data.get('message') or ''),
            id=data.get('id') or None,
        )


def _rules_from_map(raw: Optional[Dict[str, Any]], factory) -> Dict[str, List[Any]]:
    result: Dict[str, List[Any]] = {}
    for type_name, entries in (raw or {}).items():
        result[str(type_name).upper()] = [factory(entry) for entry in (entries or [])]
    return result


@dataclass
class Profile:
    """
    Stored validation profile.

    Attributes:
        name: Unique, immutable identifier
        description: Operator-facing summary
        extends: Parent profile name
        suppressions: Own suppression rules
        xsd_overrides: Type name -> occurrence overrides
        schematron_rules: Rule-set type name -> extra assertions
    """
    name: str
    description: Optional[str] = None
    extends: Optional[str] = None
    suppressions: List[SuppressionRule] = field(default_factory=list)
    xsd_overrides: Dict[str, List[XsdOverrideRule]] = field(default_factory=dict)
    schematron_rules: Dict[str, List[SchematronCustomRule]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the YAML/API shape (without the name key)."""
        data: Dict[str, Any] = {}
        if self.description:
            data['description'] = self.description
        if self.extends:
            data['extends'] = self.extends
        if self.suppressions:
            data['suppressions'] = [rule.to_dict() for rule in self.suppressions]
        if self.xsd_overrides:
            data['xsd-overrides'] = {
                type_name: [rule.to_dict() for rule in rules]
                for type_name, rules in self.xsd_overrides.items()
            }
        if self.schematron_rules:
            data['schematron-rules'] = {
                type_name: [rule.to_dict() for rule in rules]
                for type_name, rules in self.schematron_rules.items()
            }
        return data

    @classmethod
    def from_dict(cls, name: str, data: Optional[Dict[str, Any]]) -> 'Profile':
        """
        Build a profile from its YAML/API shape.

        Raises:
            ValueError: On an invalid rule entry
        """
        data = data or {}
        return cls(
            name=name,
            description=data.get('description'),
            extends=data.get('extends') or None,
            suppressions=[SuppressionRule.from_dict(item) for item in (data.get('suppressions') or [])],
            xsd_overrides=_rules_from_map(data.get('xsd-overrides'), XsdOverrideRule.from_dict),
            schematron_rules=_rules_from_map(data.get('schematron-rules'), SchematronCustomRule.from_dict),
        )


@dataclass(frozen=True)
class ResolvedProfile:
    """
    Inheritance-flattened profile snapshot.

    Ancestor rules come first. Overrides are merged per element, with the
    nearest profile winning for the same element.

    Attributes:
        name: Leaf profile name (None for the empty identity)
        chain: Profile names from root ancestor to leaf
    """
    name: Optional[str] = None
    chain: Tuple[str, ...] = ()
    suppressions: Tuple[SuppressionRule, ...] = ()
    xsd_overrides: Dict[str, Tuple[XsdOverrideRule, ...]] = field(default_factory=dict)
    schematron_rules: Dict[str, Tuple[SchematronCustomRule, ...]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.name is None and not self.suppressions

    def overrides_for(self, *type_names: str) -> Tuple[XsdOverrideRule, ...]:
        merged: Dict[str, XsdOverrideRule] = {}
        for type_name in type_names:
            for rule in self.xsd_overrides.get(type_name, ()):
                merged[rule.element] = rule
        return tuple(merged.values())

    def rules_for(self, type_name: str) -> Tuple[SchematronCustomRule, ...]:
        return self.schematron_rules.get(type_name, ())

    def with_suppressions(self, extra: List[SuppressionRule]) -> 'ResolvedProfile':
        if not extra:
            return self
        return ResolvedProfile(
            name=self.name,
            chain=self.chain,
            suppressions=self.suppressions + tuple(extra),
            xsd_overrides=self.xsd_overrides,
            schematron_rules=self.schematron_rules,
        )


EMPTY_PROFILE = ResolvedProfile()


__all__ = [
    'MatchMode',
    'SuppressionRule',
    'XsdOverrideRule',
    'SchematronCustomRule',
    'Profile',
    'ResolvedProfile',
    'EMPTY_PROFILE',
]
