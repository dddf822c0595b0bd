# Path: gib_validator/engine/reload.py
"""
Reload Orchestrator

Rebuilds in-memory assets from disk after sync, approval or manual edits.

Architecture:
- Components reload in dependency order: profiles, schemas, schematron, templates
- A scoped reload touches only the named asset kinds
- One reload at a time; a second caller gets a FAILED report or an error,
  or waits its turn (approval reloads)
- A component that raises is reported FAILED; the others still reload
"""

import threading
import time
from typing import Dict, Iterable, List, Optional, Protocol

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import GibValidatorError, ReloadInProgressError
from gib_validator.models.reload import AssetKind, ReloadReport, ReloadResult
from gib_validator.constants import LOG_INPUT, LOG_OUTPUT

logger = get_logger(__name__, 'engine')

RELOAD_ORDER = (AssetKind.PROFILES, AssetKind.SCHEMA, AssetKind.SCHEMATRON, AssetKind.TEMPLATES)


class Reloadable(Protocol):
    name: str

    def reload(self) -> ReloadResult:
        ...


class ReloadOrchestrator:
    """
    Example:
        orchestrator = ReloadOrchestrator({
            AssetKind.PROFILES: registry,
            AssetKind.SCHEMA: schema_validator,
            AssetKind.SCHEMATRON: schematron_validator,
            AssetKind.TEMPLATES: transformer,
        })
        report = orchestrator.reload_all()
    """

    def __init__(self, components: Dict[AssetKind, Reloadable]):
        self.components = components
        self._lock = threading.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def reload_all(self, raise_if_busy: bool = False) -> ReloadReport:
        return self.reload(RELOAD_ORDER, raise_if_busy=raise_if_busy)

    def reload(
        self,
        kinds: Optional[Iterable[AssetKind]] = None,
        raise_if_busy: bool = False,
        wait: bool = False
    ) -> ReloadReport:
        """
        Reload the given asset kinds (all when None).

        With wait set, the call blocks until a running reload finishes.

        Raises:
            ReloadInProgressError: Another reload is running and raise_if_busy is set
        """
        requested = set(kinds) if kinds is not None else set(RELOAD_ORDER)
        ordered = [kind for kind in RELOAD_ORDER if kind in requested and kind in self.components]

        if not self._lock.acquire(blocking=wait):
            if raise_if_busy:
                raise ReloadInProgressError("Reload already in progress")
            logger.warning("Reload requested while another reload is running")
            return ReloadReport(components=[ReloadResult.failed('Reload', "Reload already in progress")])

        start = time.time()
        try:
            logger.info(f"{LOG_INPUT} Reloading {', '.join(kind.value for kind in ordered)}")
            results: List[ReloadResult] = []
            for kind in ordered:
                results.append(self._reload_one(self.components[kind]))
            report = ReloadReport(
                components=results,
                duration_ms=int((time.time() - start) * 1000),
                generation=self.current_generation(),
            )
        finally:
            self._lock.release()

        logger.info(
            f"{LOG_OUTPUT} Reload {report.status.value} in {report.duration_ms} ms "
            f"(generation {report.generation})"
        )
        return report

    def _reload_one(self, component: Reloadable) -> ReloadResult:
        start = time.time()
        try:
            return component.reload()
        except (GibValidatorError, OSError, ValueError) as e:
            logger.error(f"{component.name} reload failed: {e}", exc_info=True)
            return ReloadResult.failed(component.name, str(e), int((time.time() - start) * 1000))

    def current_generation(self) -> int:
        numbers = [
            component.pointer.current().number
            for component in self.components.values()
            if hasattr(component, 'pointer')
        ]
        return max(numbers, default=0)


__all__ = ['ReloadOrchestrator', 'RELOAD_ORDER', 'Reloadable']
