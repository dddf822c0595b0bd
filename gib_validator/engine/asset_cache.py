# Path: gib_validator/engine/asset_cache.py
"""
Asset Cache

In-memory cache for compiled and derived assets.

Architecture:
- AssetGeneration: immutable snapshot of one asset kind's compiled assets
- GenerationPointer: holds the current snapshot; reload swaps it in one assignment
- AssetCache: time-bounded derived artifacts (override schemas, merged rule sets)
  with at most one concurrent computation per key

Derived cache keys start with (kind, generation number), so entries built
from an old generation are never served after a swap. Expiry is lazy: an
expired entry is rebuilt by the next caller, other callers wait for it.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Hashable, Mapping, Optional, Tuple, TypeVar

from gib_validator.core.logger import get_logger
from gib_validator.models.reload import AssetKind
from gib_validator.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CACHE_MAX_ENTRIES,
    LOG_PROCESS,
)

logger = get_logger(__name__, 'engine')

T = TypeVar('T')

_generation_numbers = itertools.count(1)


@dataclass(frozen=True)
class AssetGeneration(Generic[T]):
    """
    Compiled assets of one kind, as loaded by a single reload.

    Attributes:
        number: Process-wide increasing generation number
        items: Key (usually a type enum) -> compiled asset
        errors: Load errors for assets missing from items
    """
    number: int
    items: Mapping[Any, T] = field(default_factory=dict)
    errors: Tuple[str, ...] = ()
    loaded_at: datetime = field(default_factory=datetime.now)

    def get(self, key: Any) -> Optional[T]:
        return self.items.get(key)


class GenerationPointer(Generic[T]):
    """
    Current generation for one asset kind.

    Readers call current() once per request and use that snapshot
    throughout, so a concurrent swap is never observed half-way.
    """

    def __init__(self, kind: AssetKind):
        self.kind = kind
        self._current: AssetGeneration[T] = AssetGeneration(number=0)

    def current(self) -> AssetGeneration[T]:
        return self._current

    def swap(self, items: Mapping[Any, T], errors=()) -> AssetGeneration[T]:
        generation = AssetGeneration(
            number=next(_generation_numbers),
            items=dict(items),
            errors=tuple(errors),
        )
        self._current = generation
        logger.debug(
            f"{LOG_PROCESS} {self.kind.value} generation {generation.number} active "
            f"({len(generation.items)} items, {len(generation.errors)} errors)"
        )
        return generation


@dataclass
class _Entry:
    value: Any
    expires_at: float


class _Flight:
    """One in-progress computation that other callers can wait on."""

    def __init__(self, epoch: int):
        self.epoch = epoch
        self.done = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None


class AssetCache:
    """
    TTL cache with per-key request coalescing.

    Example:
        cache = AssetCache(ttl_seconds=3600)
        schema = cache.get_or_compute(
            (AssetKind.SCHEMA, generation.number, 'INVOICE', 'lenient'),
            lambda: build_override_schema(...)
        )
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}
        self._in_flight: Dict[Hashable, _Flight] = {}
        self._epoch = 0
        self._recompute_count = 0

    @property
    def recompute_count(self) -> int:
        """Number of computations started since creation."""
        return self._recompute_count

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """
        Return the cached value for key, computing it if absent or expired.

        Concurrent callers for the same key share one computation; if it
        raises, every waiting caller receives the same exception and nothing
        is cached.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > self._clock():
                return entry.value
            flight = self._in_flight.get(key)
            owner = flight is None
            if owner:
                flight = _Flight(self._epoch)
                self._in_flight[key] = flight
                self._recompute_count += 1

        if not owner:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            flight.value = compute()
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
                if flight.error is None and flight.epoch == self._epoch:
                    self._entries[key] = _Entry(flight.value, self._clock() + self.ttl_seconds)
                    self._evict()
            flight.done.set()
        return flight.value

    def invalidate(self, kind: Optional[AssetKind] = None) -> int:
        """
        Drop cached entries, all or those whose key starts with kind.

        Computations running during invalidation finish for their callers
        but are not stored.

        Returns:
            Number of entries removed
        """
        with self._lock:
            self._epoch += 1
            if kind is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                stale = [k for k in self._entries if isinstance(k, tuple) and k and k[0] is kind]
                for k in stale:
                    del self._entries[k]
                removed = len(stale)
        if removed:
            logger.debug(f"{LOG_PROCESS} Invalidated {removed} cache entries ({kind.value if kind else 'all'})")
        return removed

    def _evict(self) -> None:
        if self.max_entries <= 0:
            return
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        while len(self._entries) > self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].expires_at)
            del self._entries[oldest]


__all__ = ['AssetGeneration', 'GenerationPointer', 'AssetCache']
