"""Unit tests for pageschema.schema_cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pageschema.schema_cache import FINGERPRINT_THRESHOLD, SchemaCache, SchemaCacheConfig

if TYPE_CHECKING:
    from tests.conftest import FakeClock

PRODUCT = {"@context": "https://schema.org", "@type": "Product", "name": "Widget"}
OPTIONS = {"target": ["chatgpt"]}


class TestKeys:
    def test_small_schema_fingerprint_is_full_json(self) -> None:
        assert SchemaCache.fingerprint({"@type": "Product", "name": "W"}) == (
            '{"@type":"Product","name":"W"}'
        )

    def test_large_schema_fingerprint_is_summary(self) -> None:
        schema = {"@type": "Article", "name": "Post", "description": "d" * FINGERPRINT_THRESHOLD}
        fingerprint = SchemaCache.fingerprint(schema)
        assert '"t":"Article"' in fingerprint
        assert '"d":"' + "d" * 50 + '"' in fingerprint

    def test_key_depends_on_options(self) -> None:
        cache = SchemaCache()
        assert cache.generate_key(PRODUCT, OPTIONS) == cache.generate_key(PRODUCT, OPTIONS)
        assert cache.generate_key(PRODUCT, OPTIONS) != cache.generate_key(PRODUCT, None)
        assert len(cache.generate_key(PRODUCT)) == 16


class TestSchemaCache:
    def test_round_trip(self, clock: FakeClock) -> None:
        cache = SchemaCache(clock=clock)
        assert cache.get(PRODUCT, OPTIONS) is None
        assert cache.set(PRODUCT, OPTIONS, {**PRODUCT, "alternateName": "W"}) is True
        assert cache.get(PRODUCT, OPTIONS) == {**PRODUCT, "alternateName": "W"}

        metrics = cache.get_metrics()
        assert (metrics.hits, metrics.misses, metrics.size) == (1, 1, 1)
        assert metrics.hit_rate == 0.5
        assert metrics.average_access_time is not None

    def test_ttl(self, clock: FakeClock) -> None:
        cache = SchemaCache(SchemaCacheConfig(ttl=10.0), clock=clock)
        cache.set(PRODUCT, None, "r")
        clock.advance(11)
        assert cache.get(PRODUCT) is None
        assert cache.get_metrics().size == 0

    def test_zero_ttl_never_expires(self, clock: FakeClock) -> None:
        cache = SchemaCache(SchemaCacheConfig(ttl=0), clock=clock)
        cache.set(PRODUCT, None, "r")
        clock.advance(10**6)
        assert cache.get(PRODUCT) == "r"

    def test_should_cache_intelligent(self) -> None:
        cache = SchemaCache()
        assert cache.should_cache(PRODUCT)
        assert not cache.should_cache({"@type": "WebPage", "name": "x"})
        wide = {"@type": "WebPage", **{f"k{i}": i for i in range(5)}}
        assert cache.should_cache(wide)

    def test_basic_caches_everything(self) -> None:
        cache = SchemaCache(SchemaCacheConfig(strategy="basic"))
        assert cache.set({"@type": "WebPage"}, None, "r") is True

    def test_none_strategy(self) -> None:
        cache = SchemaCache(SchemaCacheConfig(strategy="none"))
        assert cache.set(PRODUCT, None, "r") is False
        assert cache.get(PRODUCT) is None

    def test_rejects_oversized_entry(self) -> None:
        cache = SchemaCache(SchemaCacheConfig(max_entry_size=10))
        assert cache.set(PRODUCT, None, "x" * 100) is False
        assert cache.get_metrics().rejected_entries == 1

    def test_compression_savings(self) -> None:
        cache = SchemaCache()
        cache.set(PRODUCT, None, {"a": 1, "b": [1, 2]})
        assert cache.get_metrics().compression_savings > 0

    def test_evicts_least_recently_accessed(self, clock: FakeClock) -> None:
        cache = SchemaCache(SchemaCacheConfig(max_size=2), clock=clock)
        first = {**PRODUCT, "name": "A"}
        second = {**PRODUCT, "name": "B"}
        third = {**PRODUCT, "name": "C"}
        cache.set(first, None, 1)
        clock.advance(1)
        cache.set(second, None, 2)
        clock.advance(1)
        cache.get(first)
        clock.advance(1)
        cache.set(third, None, 3)
        assert cache.get(second) is None
        assert cache.get(first) == 1
        assert cache.get_metrics().evictions == 1

    def test_configure_none_clears(self) -> None:
        cache = SchemaCache()
        cache.set(PRODUCT, None, "r")
        cache.configure(strategy="none")
        assert cache.get_metrics().size == 0

    def test_configure_shrinks(self, clock: FakeClock) -> None:
        cache = SchemaCache(clock=clock)
        for name in "ABC":
            cache.set({**PRODUCT, "name": name}, None, name)
            clock.advance(1)
        cache.configure(max_size=1)
        assert cache.get({**PRODUCT, "name": "C"}) == "C"
        assert cache.get_metrics().size == 1
