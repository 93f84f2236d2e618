"""
DeduplicatingTaxCache -- per-run memo of rate compositions keyed by
(latitude, longitude, calendar date).

Contract:
    - ``diff(keys)`` splits a batch into keys already cached and keys that
      still need a spatial query (missing keys de-duplicated, first-seen
      order), so the resolver runs once per chunk for new keys only.
    - ``put(key, composition)`` publishes an entry.  The first writer for
      a key wins; a later writer for the same key gets the existing entry
      back and the race is counted.  Every writer computes the same
      deterministic value, so either outcome is correct.
    - ``get(key)`` returns the published entry (same instance every time).

Lifecycle:
    Owned by exactly one import run; unbounded for that run; discarded
    with the run.  No eviction, no cross-run persistence.

Thread safety:
    Writes are serialized by one lock.  Entries are immutable, and a dict
    lookup of a published key is atomic, so reads need no lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable

from geotax_engines.tax import RateComposition
from geotax_kernel.domain.values import TaxCacheKey
from geotax_kernel.logging_config import get_logger
from geotax_kernel.utils.hashing import canonicalize_json

logger = get_logger("services.tax_cache")


@dataclass(frozen=True)
class CacheEntry:
    """A cached composition plus its pre-serialized JSON columns."""

    key: TaxCacheKey
    composition: RateComposition
    breakdown_json: str
    jurisdictions_json: str

    @classmethod
    def build(cls, key: TaxCacheKey, composition: RateComposition) -> CacheEntry:
        return cls(
            key=key,
            composition=composition,
            breakdown_json=canonicalize_json(composition.breakdown.to_json_dict()),
            jurisdictions_json=canonicalize_json(composition.jurisdictions_json()),
        )


@dataclass(frozen=True)
class CacheDiff:
    """Result of ``DeduplicatingTaxCache.diff``."""

    present: frozenset[TaxCacheKey] = field(default_factory=frozenset)
    missing: tuple[TaxCacheKey, ...] = ()

    @property
    def all_present(self) -> bool:
        return not self.missing


@dataclass(frozen=True)
class CacheStats:
    entries: int
    hits: int
    misses: int
    races: int


class DeduplicatingTaxCache:
    """Thread-safe, append-mostly cache for one import run."""

    def __init__(self) -> None:
        self._entries: dict[TaxCacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._races = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def diff(self, keys: Iterable[TaxCacheKey]) -> CacheDiff:
        present: set[TaxCacheKey] = set()
        missing: dict[TaxCacheKey, None] = {}
        lookups = 0
        for key in keys:
            lookups += 1
            if key in self._entries:
                present.add(key)
            else:
                missing.setdefault(key, None)

        with self._lock:
            self._misses += len(missing)
            self._hits += lookups - len(missing)

        return CacheDiff(present=frozenset(present), missing=tuple(missing))

    def get(self, key: TaxCacheKey) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, key: TaxCacheKey, composition: RateComposition) -> CacheEntry:
        existing = self._entries.get(key)
        if existing is not None:
            return self._record_race(existing)

        candidate = CacheEntry.build(key, composition)
        with self._lock:
            existing = self._entries.get(key)
            if existing is None:
                self._entries[key] = candidate
                return candidate
        return self._record_race(existing)

    def resolve_or_compute(
        self,
        key: TaxCacheKey,
        compute: Callable[[TaxCacheKey], RateComposition],
    ) -> CacheEntry:
        """Single-key form: cached entry, or compute once and publish."""
        entry = self._entries.get(key)
        if entry is not None:
            with self._lock:
                self._hits += 1
            return entry
        with self._lock:
            self._misses += 1
        return self.put(key, compute(key))

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                races=self._races,
            )

    def _record_race(self, existing: CacheEntry) -> CacheEntry:
        with self._lock:
            self._races += 1
        logger.debug(
            "tax_cache_race",
            extra={"as_of": existing.key.as_of, "entries": len(self._entries)},
        )
        return existing
