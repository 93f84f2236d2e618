"""
Tests for DeduplicatingTaxCache.

Covers:
- diff(): present vs missing, de-duplication, first-seen order
- put(): first writer wins, race counted, identical instance returned
- Precomputed JSON columns
- Concurrent writers on the same keys
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from uuid import uuid4

from geotax_engines.tax import EMPTY_COMPOSITION, compose_rates
from geotax_kernel.domain.values import JurisdictionMatch, JurisdictionType, TaxCacheKey
from geotax_services.tax_cache import DeduplicatingTaxCache

D = date(2025, 3, 1)


def key(lat: str, lon: str = "-73.9857", as_of: date = D) -> TaxCacheKey:
    return TaxCacheKey(Decimal(lat), Decimal(lon), as_of)


def manhattan_composition():
    return compose_rates(
        [
            JurisdictionMatch(uuid4(), "New York State", JurisdictionType.STATE, Decimal("0.04")),
            JurisdictionMatch(uuid4(), "New York County", JurisdictionType.COUNTY, Decimal("0.045")),
            JurisdictionMatch(uuid4(), "MCTD", JurisdictionType.SPECIAL, Decimal("0.00375")),
        ]
    )


class TestDiff:
    def test_all_missing_on_empty_cache(self):
        cache = DeduplicatingTaxCache()
        diff = cache.diff([key("40.1"), key("40.2")])
        assert diff.present == frozenset()
        assert diff.missing == (key("40.1"), key("40.2"))
        assert not diff.all_present

    def test_missing_deduplicated_in_first_seen_order(self):
        cache = DeduplicatingTaxCache()
        diff = cache.diff([key("40.3"), key("40.1"), key("40.3"), key("40.2"), key("40.1")])
        assert diff.missing == (key("40.3"), key("40.1"), key("40.2"))

    def test_present_and_missing(self):
        cache = DeduplicatingTaxCache()
        cache.put(key("40.1"), EMPTY_COMPOSITION)
        diff = cache.diff([key("40.1"), key("40.2")])
        assert diff.present == frozenset({key("40.1")})
        assert diff.missing == (key("40.2"),)

    def test_date_is_part_of_key(self):
        cache = DeduplicatingTaxCache()
        cache.put(key("40.1"), EMPTY_COMPOSITION)
        diff = cache.diff([key("40.1", as_of=date(2025, 3, 2))])
        assert diff.missing == (key("40.1", as_of=date(2025, 3, 2)),)

    def test_hit_and_miss_counters(self):
        cache = DeduplicatingTaxCache()
        cache.put(key("40.1"), EMPTY_COMPOSITION)
        cache.diff([key("40.1"), key("40.1"), key("40.2"), key("40.2")])
        stats = cache.stats()
        assert stats.hits == 3  # two present lookups + the repeated missing key
        assert stats.misses == 1
        assert stats.entries == 1


class TestPut:
    def test_get_returns_same_instance(self):
        cache = DeduplicatingTaxCache()
        entry = cache.put(key("40.1"), manhattan_composition())
        assert cache.get(key("40.1")) is entry
        assert cache.get(key("40.1")) is cache.get(key("40.1"))
        assert key("40.1") in cache
        assert len(cache) == 1

    def test_first_writer_wins(self):
        cache = DeduplicatingTaxCache()
        first = cache.put(key("40.1"), manhattan_composition())
        second = cache.put(key("40.1"), manhattan_composition())
        assert second is first
        assert cache.stats().races == 1

    def test_precomputed_json(self):
        cache = DeduplicatingTaxCache()
        entry = cache.put(key("40.1"), manhattan_composition())
        assert json.loads(entry.breakdown_json) == {
            "state_rate": "0.040000",
            "county_rate": "0.045000",
            "city_rate": None,
            "special_rate": "0.003750",
        }
        assert [j["name"] for j in json.loads(entry.jurisdictions_json)] == [
            "New York State",
            "New York County",
            "MCTD",
        ]

    def test_get_unknown_is_none(self):
        assert DeduplicatingTaxCache().get(key("40.1")) is None


class TestResolveOrCompute:
    def test_computes_once(self):
        cache = DeduplicatingTaxCache()
        calls = []

        def compute(k):
            calls.append(k)
            return manhattan_composition()

        a = cache.resolve_or_compute(key("40.1"), compute)
        b = cache.resolve_or_compute(key("40.1"), compute)
        assert a is b
        assert calls == [key("40.1")]
        assert cache.stats().hits == 1
        assert cache.stats().misses == 1


class TestConcurrency:
    def test_concurrent_writers_publish_one_entry_per_key(self):
        cache = DeduplicatingTaxCache()
        keys = [key(f"40.{i:02d}") for i in range(50)]
        barrier = threading.Barrier(8)

        def writer(_):
            barrier.wait()
            return [cache.put(k, manhattan_composition()) for k in keys]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(writer, range(8)))

        assert len(cache) == 50
        for i, k in enumerate(keys):
            published = cache.get(k)
            assert all(r[i] is published for r in results)
        stats = cache.stats()
        assert stats.entries == 50
        assert stats.races == 8 * 50 - 50
