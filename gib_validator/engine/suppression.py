# Path: gib_validator/engine/suppression.py
"""
Suppression Engine

Removes validation errors matched by a resolved profile's suppression rules.

Architecture:
- Regex modes (ruleId, test, text) search anywhere in the error field
- Equals modes (ruleIdEquals, testEquals) compare the field exactly
- A rule participates only if its scope is empty or intersects the active types
- An error is suppressed when any participating rule matches
- Compiled patterns are cached per pattern string (LRU bounded); the cache is
  cleared on profile edits
"""

import re
import threading
from collections import OrderedDict
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from gib_validator.core.logger import get_logger
from gib_validator.models.profile import MatchMode, SuppressionRule
from gib_validator.models.validation import RuleError
from gib_validator.constants import MAX_ADHOC_SUPPRESSION_LENGTH, MAX_REGEX_CACHE_ENTRIES

logger = get_logger(__name__, 'engine')

_INVALID = object()


class RegexCache:
    """
    Pattern string -> compiled regex, or a marker for patterns that do not compile.

    Holds at most max_entries patterns (profile and request-level),
    evicting the least recently used.
    """

    def __init__(self, max_entries: int = MAX_REGEX_CACHE_ENTRIES):
        self.max_entries = max_entries
        self._compiled: 'OrderedDict[str, object]' = OrderedDict()
        self._lock = threading.Lock()

    def get(self, pattern: str) -> Optional[Pattern]:
        with self._lock:
            compiled = self._compiled.get(pattern)
            if compiled is not None:
                self._compiled.move_to_end(pattern)
        if compiled is None:
            try:
                compiled = re.compile(pattern)
            except re.error as e:
                logger.warning(f"Invalid suppression pattern skipped: '{pattern}' ({e})")
                compiled = _INVALID
            with self._lock:
                self._compiled[pattern] = compiled
                while len(self._compiled) > self.max_entries:
                    self._compiled.popitem(last=False)
        return None if compiled is _INVALID else compiled

    def clear(self) -> None:
        with self._lock:
            self._compiled.clear()

    def __len__(self) -> int:
        return len(self._compiled)


class SuppressionEngine:
    """
    Example:
        engine = SuppressionEngine()
        kept, suppressed = engine.filter_rule_errors(errors, profile.suppressions, {'UBLTR_MAIN'})
    """

    def __init__(self, regex_cache: Optional[RegexCache] = None):
        self.regex_cache = regex_cache if regex_cache is not None else RegexCache()

    def matches(self, rule: SuppressionRule, value: Optional[str]) -> bool:
        if value is None:
            return False
        if rule.match.is_exact:
            return value == rule.pattern
        compiled = self.regex_cache.get(rule.pattern)
        return compiled is not None and compiled.search(value) is not None

    def is_suppressed(self, error: RuleError, rules: Sequence[SuppressionRule]) -> bool:
        return any(self.matches(rule, getattr(error, rule.match.target_field)) for rule in rules)

    @staticmethod
    def active_rules(rules: Iterable[SuppressionRule], active_types: Iterable[str]) -> List[SuppressionRule]:
        active = set(active_types)
        return [rule for rule in rules if rule.applies_to(active)]

    def filter_rule_errors(
        self,
        errors: Sequence[RuleError],
        rules: Sequence[SuppressionRule],
        active_types: Iterable[str]
    ) -> Tuple[List[RuleError], List[RuleError]]:
        """
        Split Schematron errors into (kept, suppressed), preserving order.
        """
        in_scope = self.active_rules(rules, active_types)
        if not in_scope:
            return list(errors), []
        kept, suppressed = [], []
        for error in errors:
            (suppressed if self.is_suppressed(error, in_scope) else kept).append(error)
        return kept, suppressed

    def filter_schema_errors(
        self,
        errors: Sequence[str],
        rules: Sequence[SuppressionRule],
        active_types: Iterable[str]
    ) -> Tuple[List[str], List[str]]:
        """
        Split XSD error strings into (kept, suppressed).

        XSD errors carry no rule id or test, so only text-mode rules apply.
        """
        text_rules = [r for r in self.active_rules(rules, active_types) if r.match is MatchMode.TEXT]
        if not text_rules:
            return list(errors), []
        kept, suppressed = [], []
        for error in errors:
            hit = any(self.matches(rule, error) for rule in text_rules)
            (suppressed if hit else kept).append(error)
        return kept, suppressed


def parse_adhoc_suppressions(raw: Optional[str]) -> List[SuppressionRule]:
    """
    Parse request-level suppressions.

    Comma separated tokens:
        test:EXPR  -> testEquals EXPR
        text:PAT   -> text regex PAT (skipped if it does not compile)
        anything   -> ruleIdEquals
    Tokens longer than MAX_ADHOC_SUPPRESSION_LENGTH are ignored.
    """
    if not raw:
        return []
    rules = []
    for token in raw.split(','):
        token = token.strip()
        if not token or len(token) > MAX_ADHOC_SUPPRESSION_LENGTH:
            continue
        if token.startswith('test:'):
            value = token[len('test:'):].strip()
            if value:
                rules.append(SuppressionRule(MatchMode.TEST_EQUALS, value, description='ad-hoc'))
        elif token.startswith('text:'):
            value = token[len('text:'):].strip()
            if not value:
                continue
            try:
                re.compile(value)
            except re.error as e:
                logger.warning(f"Ad-hoc text suppression skipped, invalid regex '{value}': {e}")
                continue
            rules.append(SuppressionRule(MatchMode.TEXT, value, description='ad-hoc'))
        else:
            rules.append(SuppressionRule(MatchMode.RULE_ID_EQUALS, token, description='ad-hoc'))
    return rules


__all__ = ['RegexCache', 'SuppressionEngine', 'parse_adhoc_suppressions']
