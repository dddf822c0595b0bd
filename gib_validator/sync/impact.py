# Path: gib_validator/sync/impact.py
"""
Suppression Impact Analyzer

Finds suppression rules that may silently stop matching once a staged
rule-set change is approved.

Architecture:
- Only MODIFIED and REMOVED rule-set files (.xml, .sch) are inspected
- Rule ids (@id of pattern/rule/assert/report) and assertion tests are
  collected from the live and staged copies
- Exact-mode rules warn when their target disappears; regex-mode rules warn
  when they matched something live and match nothing staged
- Severity follows policy: unscoped rules use severity_unscoped, scoped
  rules severity_scoped; an id that looks renamed is demoted one level
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from lxml import etree

from gib_validator.core.logger import get_logger
from gib_validator.engine.profiles import ProfileRegistry
from gib_validator.engine.suppression import RegexCache
from gib_validator.models.profile import MatchMode, SuppressionRule
from gib_validator.models.versioning import (
    FileChangeStatus,
    FileDiffSummary,
    SuppressionWarning,
    WarningSeverity,
)
from gib_validator.constants import LOG_INPUT, LOG_OUTPUT, RULE_FILE_SUFFIXES

logger = get_logger(__name__, 'sync')

_ID_ELEMENTS = {'pattern', 'rule', 'assert', 'report'}
_TEST_ELEMENTS = {'assert', 'report'}


@dataclass
class RuleTargets:
    """Suppression targets present in one rule-set file."""
    ids: Set[str] = field(default_factory=set)
    tests: Set[str] = field(default_factory=set)


def extract_rule_targets(path: Optional[Path]) -> RuleTargets:
    """Rule ids and test expressions of a rule-set file; empty when absent or unparseable."""
    targets = RuleTargets()
    if path is None or not path.is_file():
        return targets
    parser = etree.XMLParser(no_network=True, resolve_entities=False, load_dtd=False, huge_tree=True)
    try:
        tree = etree.parse(str(path), parser)
    except etree.XMLSyntaxError as e:
        logger.warning(f"Rule ids not extracted from {path.name}: {e}")
        return targets
    for element in tree.iter(tag=etree.Element):
        local_name = etree.QName(element).localname
        if local_name in _ID_ELEMENTS and element.get('id'):
            targets.ids.add(element.get('id'))
        if local_name in _TEST_ELEMENTS and element.get('test'):
            targets.tests.add(element.get('test'))
    return targets


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def find_rename(removed_id: str, candidates: Iterable[str]) -> Optional[str]:
    """Closest new id within max(3, len/3) edits (case-insensitive), or None."""
    threshold = max(3, len(removed_id) // 3)
    best: Optional[Tuple[int, str]] = None
    for candidate in candidates:
        distance = levenshtein(removed_id.lower(), candidate.lower())
        if distance <= threshold and (best is None or (distance, candidate) < best):
            best = (distance, candidate)
    return best[1] if best else None


class SuppressionImpactAnalyzer:
    """
    Example:
        analyzer = SuppressionImpactAnalyzer(registry)
        warnings = analyzer.analyze(diffs, live_root, staging_root)
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        severity_unscoped: WarningSeverity = WarningSeverity.CRITICAL,
        severity_scoped: WarningSeverity = WarningSeverity.WARNING,
        regex_cache: Optional[RegexCache] = None
    ):
        self.registry = registry
        self.severity_unscoped = severity_unscoped
        self.severity_scoped = severity_scoped
        self.regex_cache = regex_cache if regex_cache is not None else RegexCache()

    def analyze(self, diffs: List[FileDiffSummary], live_root: Path, staged_root: Path) -> List[SuppressionWarning]:
        changed = [
            diff for diff in diffs
            if diff.status in (FileChangeStatus.MODIFIED, FileChangeStatus.REMOVED)
            and diff.path.lower().endswith(RULE_FILE_SUFFIXES)
        ]
        if not changed:
            return []
        logger.info(f"{LOG_INPUT} Suppression impact over {len(changed)} changed rule files")

        live, staged = RuleTargets(), RuleTargets()
        for diff in changed:
            before = extract_rule_targets(Path(live_root) / diff.path)
            after = extract_rule_targets(
                Path(staged_root) / diff.path if diff.status is FileChangeStatus.MODIFIED else None
            )
            live.ids |= before.ids
            live.tests |= before.tests
            staged.ids |= after.ids
            staged.tests |= after.tests

        warnings: List[SuppressionWarning] = []
        seen = set()
        for profile_name, rule in self._suppression_rules():
            warning = self._check(profile_name, rule, live, staged)
            if warning is None:
                continue
            key = (warning.profile_name, warning.rule_id, rule.match, warning.pattern)
            if key not in seen:
                seen.add(key)
                warnings.append(warning)

        logger.info(f"{LOG_OUTPUT} {len(warnings)} suppression warnings")
        return warnings

    def _suppression_rules(self):
        # Each profile's own rules; inherited rules are reported on the ancestor
        for profile in self.registry.list_profiles():
            for rule in profile.suppressions:
                yield profile.name, rule

    def _severity(self, rule: SuppressionRule) -> WarningSeverity:
        return self.severity_scoped if rule.scope else self.severity_unscoped

    def _check(
        self,
        profile_name: str,
        rule: SuppressionRule,
        live: RuleTargets,
        staged: RuleTargets
    ) -> Optional[SuppressionWarning]:
        severity = self._severity(rule)

        if rule.match is MatchMode.RULE_ID_EQUALS:
            if rule.pattern not in live.ids or rule.pattern in staged.ids:
                return None
            renamed = find_rename(rule.pattern, staged.ids - live.ids)
            if renamed:
                return SuppressionWarning(
                    rule.pattern, profile_name, rule.pattern, severity.demoted(),
                    f"Rule id '{rule.pattern}' was removed, possibly renamed to '{renamed}'"
                )
            return SuppressionWarning(
                rule.pattern, profile_name, rule.pattern, severity,
                f"Rule id '{rule.pattern}' no longer exists in the staged rule set"
            )

        if rule.match is MatchMode.TEST_EQUALS:
            if rule.pattern not in live.tests or rule.pattern in staged.tests:
                return None
            return SuppressionWarning(
                rule.pattern, profile_name, rule.pattern, severity,
                "Suppressed test expression was removed or changed in the staged rule set"
            )

        if rule.match in (MatchMode.RULE_ID, MatchMode.TEST):
            compiled = self.regex_cache.get(rule.pattern)
            if compiled is None:
                return None
            before, after = (live.ids, staged.ids) if rule.match is MatchMode.RULE_ID else (live.tests, staged.tests)
            matched_live = sorted(value for value in before if compiled.search(value))
            if not matched_live or any(compiled.search(value) for value in after):
                return None
            target = 'rule id' if rule.match is MatchMode.RULE_ID else 'test expression'
            return SuppressionWarning(
                matched_live[0], profile_name, rule.pattern, severity,
                f"Pattern '{rule.pattern}' matches no {target} in the staged rule set "
                f"(previously matched {len(matched_live)})"
            )

        return None


__all__ = [
    'SuppressionImpactAnalyzer',
    'RuleTargets',
    'extract_rule_targets',
    'levenshtein',
    'find_rename',
]
