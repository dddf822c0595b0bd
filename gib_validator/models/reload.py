# Path: gib_validator/models/reload.py
"""
Reload Result Objects

Per-component outcome of a cache reload, aggregated into a report.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List


class AssetKind(Enum):
    """Independently reloadable asset families."""
    PROFILES = 'PROFILES'
    SCHEMA = 'SCHEMA'
    SCHEMATRON = 'SCHEMATRON'
    TEMPLATES = 'TEMPLATES'


class ReloadStatus(Enum):
    """
    OK: every asset loaded
    PARTIAL: some assets failed
    FAILED: nothing usable loaded
    SUCCESS: whole reload run finished without a FAILED component
    """
    OK = 'OK'
    PARTIAL = 'PARTIAL'
    FAILED = 'FAILED'
    SUCCESS = 'SUCCESS'


@dataclass
class ReloadResult:
    component_name: str
    status: ReloadStatus
    loaded_count: int = 0
    duration_ms: int = 0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_counts(cls, component_name: str, loaded: int, errors: List[str], duration_ms: int) -> 'ReloadResult':
        """OK without errors, PARTIAL when something loaded anyway, FAILED otherwise."""
        if not errors:
            status = ReloadStatus.OK
        elif loaded > 0:
            status = ReloadStatus.PARTIAL
        else:
            status = ReloadStatus.FAILED
        return cls(component_name, status, loaded, duration_ms, list(errors))

    @classmethod
    def failed(cls, component_name: str, error: str, duration_ms: int = 0) -> 'ReloadResult':
        return cls(component_name, ReloadStatus.FAILED, 0, duration_ms, [error])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'componentName': self.component_name,
            'status': self.status.value,
            'loadedCount': self.loaded_count,
            'durationMs': self.duration_ms,
            'errors': list(self.errors),
        }


@dataclass
class ReloadReport:
    """
    Attributes:
        status: SUCCESS unless a component FAILED, then PARTIAL
        components: Per-component results in reload order
        generation: Asset generation number after the reload
    """
    components: List[ReloadResult] = field(default_factory=list)
    duration_ms: int = 0
    generation: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def status(self) -> ReloadStatus:
        if any(c.status is ReloadStatus.FAILED for c in self.components):
            return ReloadStatus.PARTIAL
        return ReloadStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'components': [c.to_dict() for c in self.components],
            'durationMs': self.duration_ms,
            'generation': self.generation,
            'timestamp': self.timestamp.isoformat(),
        }


__all__ = ['AssetKind', 'ReloadStatus', 'ReloadResult', 'ReloadReport']
