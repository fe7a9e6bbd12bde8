"""Tests for the compiled-rule cache."""

from ruleengine.runtime.cache import CompiledRuleCache, get_rule_cache, reset_rule_cache


class TestCompiledRuleCache:
    def test_get_or_load_caches(self):
        """Test the loader runs once per key."""
        cache = CompiledRuleCache()
        calls = []

        def loader(schema_id):
            calls.append(schema_id)
            return ["compiled"]

        assert cache.get_or_load("default", 1, loader) == ("compiled",)
        assert cache.get_or_load("default", 1, loader) == ("compiled",)
        assert calls == [1]

    def test_tenants_are_isolated(self):
        """Test entries of one tenant are invisible to another."""
        cache = CompiledRuleCache()
        cache.put("a", 1, ["x"])
        assert cache.get("b", 1) is None
        assert cache.contains("a", 1)

    def test_invalidate(self):
        """Test invalidating a single entry."""
        cache = CompiledRuleCache()
        cache.put("default", 1, ["x"])
        assert cache.invalidate("default", 1) is True
        assert cache.invalidate("default", 1) is False
        assert cache.get("default", 1) is None

    def test_stale_load_is_not_published(self):
        """A load overtaken by invalidation is not stored."""
        cache = CompiledRuleCache()

        def loader(schema_id):
            # Invalidation lands while the load is in flight
            cache.invalidate("default", schema_id)
            return ["stale"]

        assert cache.get_or_load("default", 1, loader) == ("stale",)
        assert not cache.contains("default", 1)

    def test_invalidate_all(self):
        """Test clearing every entry."""
        cache = CompiledRuleCache()
        cache.put("default", 1, [])
        cache.put("default", 2, [])
        assert cache.invalidate_all() == 2
        assert cache.get_stats()["size"] == 0

    def test_eviction(self):
        """Test the cache stays within max_size."""
        cache = CompiledRuleCache(max_size=2)
        for schema_id in range(3):
            cache.put("default", schema_id, [])
        assert cache.get_stats()["size"] <= 2
        assert cache.contains("default", 2)

    def test_stats(self):
        """Test hit and miss counters."""
        cache = CompiledRuleCache()
        cache.get("default", 1)
        cache.put("default", 1, [])
        cache.get("default", 1)
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["cached_schemas"] == ["default:1"]


class TestGlobalCache:
    def test_reset(self):
        """Test resetting the global cache."""
        cache = get_rule_cache()
        assert get_rule_cache() is cache
        reset_rule_cache()
        assert get_rule_cache() is not cache
