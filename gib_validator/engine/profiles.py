# Path: gib_validator/engine/profiles.py
"""
Validation Profile Registry

YAML-backed store of validation profiles and global Schematron rules.

Architecture:
- One YAML file: 'schematron-rules' (global, by rule-set type) then 'profiles'
- Loaded state is an immutable snapshot swapped as a whole on reload/save
- resolve() walks the extends chain explicitly and caches the flattened result
- Change listeners let dependent caches drop stale entries

File shape:
    schematron-rules:
      UBLTR_MAIN:
        - context: /Invoice
          test: cbc:ProfileID
          message: ProfileID required
          id: GLOBAL-001
    profiles:
      lenient:
        description: Skip signature checks
        extends: base
        suppressions:
          - match: ruleIdEquals
            pattern: R-001
            scope: [UBLTR_MAIN]
        xsd-overrides:
          INVOICE:
            - element: cac:Signature
              minOccurs: 0
        schematron-rules:
          UBLTR_MAIN:
            - {context: /Invoice, test: cbc:Note, message: Note required, id: P-001}
"""

import re
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

import yaml

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import (
    CyclicProfileError,
    ProfileConflictError,
    ProfileError,
    ProfileNotFoundError,
)
from gib_validator.models.profile import (
    EMPTY_PROFILE,
    Profile,
    ResolvedProfile,
    SchematronCustomRule,
)
from gib_validator.models.reload import ReloadResult
from gib_validator.constants import COMPONENT_PROFILES, LOG_INPUT, LOG_OUTPUT, LOG_PROCESS

logger = get_logger(__name__, 'engine')

_PROFILE_NAME = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]{0,99}$')


class _ProfileState:
    """Immutable snapshot of the YAML file plus its resolution cache."""

    def __init__(self, profiles: Dict[str, Profile], global_rules: Dict[str, List[SchematronCustomRule]]):
        self.profiles = profiles
        self.global_rules = global_rules
        self.resolved: Dict[str, ResolvedProfile] = {}


def resolve_profile(profiles: Dict[str, Profile], name: str) -> ResolvedProfile:
    """
    Flatten a profile and its ancestors.

    Ancestor rules come first; XSD overrides are merged per element with
    the nearest profile winning.

    Raises:
        ProfileNotFoundError: Profile or one of its parents does not exist
        CyclicProfileError: The extends chain revisits a profile
    """
    chain: List[str] = []
    visited = set()
    current: Optional[str] = name
    while current:
        if current in visited:
            raise CyclicProfileError(chain + [current])
        visited.add(current)
        profile = profiles.get(current)
        if profile is None:
            if not chain:
                raise ProfileNotFoundError(f"Profile not found: {current}")
            raise ProfileNotFoundError(f"Profile '{chain[-1]}' extends unknown profile '{current}'")
        chain.append(current)
        current = profile.extends
    chain.reverse()

    suppressions = []
    overrides: Dict[str, Dict[str, object]] = {}
    custom_rules: Dict[str, list] = {}
    for profile_name in chain:
        profile = profiles[profile_name]
        suppressions.extend(profile.suppressions)
        for type_name, rules in profile.xsd_overrides.items():
            merged = overrides.setdefault(type_name, {})
            for rule in rules:
                merged[rule.element] = rule
        for type_name, rules in profile.schematron_rules.items():
            custom_rules.setdefault(type_name, []).extend(rules)

    return ResolvedProfile(
        name=name,
        chain=tuple(chain),
        suppressions=tuple(suppressions),
        xsd_overrides={t: tuple(by_element.values()) for t, by_element in overrides.items()},
        schematron_rules={t: tuple(rules) for t, rules in custom_rules.items()},
    )


class ProfileRegistry:
    """
    Profile store with inheritance resolution.

    Example:
        registry = ProfileRegistry(Path('assets/validation-profiles.yml'))
        registry.reload()
        resolved = registry.resolve('lenient')
    """

    name = COMPONENT_PROFILES

    def __init__(self, profiles_file: Path):
        self.profiles_file = Path(profiles_file)
        self._state = _ProfileState({}, {})
        self._write_lock = threading.Lock()
        self._listeners: List[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every successful reload or edit."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # read access
    # ------------------------------------------------------------------

    def list_profiles(self) -> List[Profile]:
        return [self._state.profiles[name] for name in sorted(self._state.profiles)]

    def get(self, name: str) -> Profile:
        profile = self._state.profiles.get(name)
        if profile is None:
            raise ProfileNotFoundError(f"Profile not found: {name}")
        return profile

    def exists(self, name: str) -> bool:
        return name in self._state.profiles

    def resolve(self, name: Optional[str]) -> ResolvedProfile:
        """
        Resolved profile for name; the empty identity when name is blank.

        Raises:
            ProfileNotFoundError, CyclicProfileError
        """
        if not name or not name.strip():
            return EMPTY_PROFILE
        name = name.strip()
        state = self._state
        resolved = state.resolved.get(name)
        if resolved is None:
            resolved = resolve_profile(state.profiles, name)
            state.resolved[name] = resolved
        return resolved

    def global_rules(self) -> Dict[str, List[SchematronCustomRule]]:
        return {t: list(rules) for t, rules in self._state.global_rules.items()}

    def global_rules_for(self, type_name: str) -> List[SchematronCustomRule]:
        return list(self._state.global_rules.get(type_name, []))

    # ------------------------------------------------------------------
    # reload
    # ------------------------------------------------------------------

    def reload(self) -> ReloadResult:
        """
        Re-read the YAML file.

        A broken profile entry is skipped (PARTIAL); an unreadable file
        keeps the previous state (FAILED).
        """
        start = time.time()
        logger.info(f"{LOG_INPUT} Loading validation profiles from {self.profiles_file}")
        try:
            raw = self._read_yaml()
        except (OSError, yaml.YAMLError) as e:
            duration = int((time.time() - start) * 1000)
            logger.error(f"Validation profile file unreadable: {e}")
            return ReloadResult.failed(COMPONENT_PROFILES, f"Profile file unreadable: {e}", duration)

        profiles, global_rules, errors = self._parse(raw)
        for name in profiles:
            try:
                resolve_profile(profiles, name)
            except ProfileError as e:
                errors.append(f"{name}: {e}")

        self._swap(_ProfileState(profiles, global_rules))
        duration = int((time.time() - start) * 1000)
        result = ReloadResult.from_counts(COMPONENT_PROFILES, len(profiles), errors, duration)
        logger.info(
            f"{LOG_OUTPUT} {len(profiles)} profiles, "
            f"{sum(len(r) for r in global_rules.values())} global rules ({result.status.value})"
        )
        return result

    def _read_yaml(self) -> dict:
        if not self.profiles_file.is_file():
            return {}
        with open(self.profiles_file, 'r', encoding='utf-8') as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise yaml.YAMLError("top level must be a mapping")
        return raw

    def _parse(self, raw: dict):
        errors: List[str] = []
        global_rules: Dict[str, List[SchematronCustomRule]] = {}
        for type_name, entries in (raw.get('schematron-rules') or {}).items():
            rules = [SchematronCustomRule.from_dict(entry or {}) for entry in (entries or [])]
            complete = [rule for rule in rules if rule.is_complete()]
            if len(complete) != len(rules):
                logger.warning(f"Skipped {len(rules) - len(complete)} incomplete global rules for {type_name}")
            global_rules[str(type_name).upper()] = complete

        profiles: Dict[str, Profile] = {}
        for name, body in (raw.get('profiles') or {}).items():
            name = str(name)
            try:
                profiles[name] = self._complete_rules_only(Profile.from_dict(name, body))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping invalid profile '{name}': {e}")
                errors.append(f"{name}: {e}")
        return profiles, global_rules, errors

    @staticmethod
    def _complete_rules_only(profile: Profile) -> Profile:
        for type_name, rules in list(profile.schematron_rules.items()):
            complete = [rule for rule in rules if rule.is_complete()]
            if len(complete) != len(rules):
                logger.warning(
                    f"Profile '{profile.name}': skipped {len(rules) - len(complete)} "
                    f"incomplete schematron rules for {type_name}"
                )
            profile.schematron_rules[type_name] = complete
        return profile

    def _swap(self, state: _ProfileState) -> None:
        self._state = state
        for listener in self._listeners:
            listener()

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------

    def save(self, profile: Profile, create_only: bool = False) -> Profile:
        """
        Create or replace a profile and persist the file.

        Raises:
            ProfileError: Invalid name, regex or inheritance
            ProfileConflictError: create_only and the name is taken
        """
        if not _PROFILE_NAME.match(profile.name or ''):
            raise ProfileError(f"Invalid profile name: {profile.name!r}")
        self._check_patterns(profile)

        with self._write_lock:
            state = self._state
            if create_only and profile.name in state.profiles:
                raise ProfileConflictError(f"Profile already exists: {profile.name}")
            profiles = dict(state.profiles)
            profiles[profile.name] = profile
            resolve_profile(profiles, profile.name)
            self._persist(profiles, state.global_rules)
            self._swap(_ProfileState(profiles, state.global_rules))
        logger.info(f"{LOG_OUTPUT} Profile saved: {profile.name}")
        return profile

    def delete(self, name: str) -> None:
        """
        Raises:
            ProfileNotFoundError: Unknown profile
            ProfileConflictError: Other profiles extend it
        """
        with self._write_lock:
            state = self._state
            if name not in state.profiles:
                raise ProfileNotFoundError(f"Profile not found: {name}")
            children = sorted(p.name for p in state.profiles.values() if p.extends == name)
            if children:
                raise ProfileConflictError(
                    f"Profile '{name}' is extended by: {', '.join(children)}"
                )
            profiles = {k: v for k, v in state.profiles.items() if k != name}
            self._persist(profiles, state.global_rules)
            self._swap(_ProfileState(profiles, state.global_rules))
        logger.info(f"{LOG_OUTPUT} Profile deleted: {name}")

    def put_global_rules(self, type_name: str, rules: List[SchematronCustomRule]) -> None:
        incomplete = [rule for rule in rules if not rule.is_complete()]
        if incomplete:
            raise ProfileError("Global rules need context, test and message")
        with self._write_lock:
            state = self._state
            global_rules = dict(state.global_rules)
            global_rules[type_name.upper()] = list(rules)
            self._persist(state.profiles, global_rules)
            self._swap(_ProfileState(state.profiles, global_rules))
        logger.info(f"{LOG_OUTPUT} Global rules saved for {type_name}: {len(rules)}")

    def delete_global_rules(self, type_name: Optional[str] = None) -> None:
        with self._write_lock:
            state = self._state
            if type_name is None:
                global_rules = {}
            else:
                global_rules = {k: v for k, v in state.global_rules.items() if k != type_name.upper()}
            self._persist(state.profiles, global_rules)
            self._swap(_ProfileState(state.profiles, global_rules))
        logger.info(f"{LOG_OUTPUT} Global rules deleted: {type_name or 'all'}")

    @staticmethod
    def _check_patterns(profile: Profile) -> None:
        for rule in profile.suppressions:
            if rule.match.is_exact:
                continue
            try:
                re.compile(rule.pattern)
            except re.error as e:
                raise ProfileError(f"Invalid suppression pattern '{rule.pattern}': {e}")

    def _persist(self, profiles: Dict[str, Profile], global_rules: Dict[str, List[SchematronCustomRule]]) -> None:
        document = {}
        if global_rules:
            document['schematron-rules'] = {
                type_name: [rule.to_dict() for rule in rules]
                for type_name, rules in global_rules.items()
            }
        document['profiles'] = {name: profiles[name].to_dict() for name in sorted(profiles)}

        self.profiles_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.profiles_file.with_suffix('.yml.tmp')
        with open(tmp_file, 'w', encoding='utf-8') as handle:
            yaml.safe_dump(document, handle, default_flow_style=False, sort_keys=False,
                           allow_unicode=True, indent=2)
        tmp_file.replace(self.profiles_file)
        logger.debug(f"{LOG_PROCESS} Profiles written to {self.profiles_file}")


__all__ = ['ProfileRegistry', 'resolve_profile']
