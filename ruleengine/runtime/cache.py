"""
In-memory cache for compiled rule sets.

One entry per ``(tenant, schema id)`` holding an immutable tuple of
compiled rules. Reads are plain dict lookups; writes and invalidation go
through a single lock.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Callable, Iterable

if TYPE_CHECKING:
    from .engine import CompiledRule

CacheKey = tuple[str, int]


class CompiledRuleCache:
    """Thread-safe cache of compiled rules per schema."""

    def __init__(self, max_size: int = 256):
        """Initialize the cache.

        Args:
            max_size: Maximum number of schemas to cache
        """
        self._cache: dict[CacheKey, tuple[CompiledRule, ...]] = {}
        self._generations: dict[CacheKey, int] = {}
        self._max_size = max_size
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, tenant_id: str, schema_id: int) -> tuple[CompiledRule, ...] | None:
        """Get the compiled rules for a schema, or None if not cached."""
        rules = self._cache.get((tenant_id, schema_id))
        if rules is None:
            self._misses += 1
        else:
            self._hits += 1
        return rules

    def put(self, tenant_id: str, schema_id: int, rules: Iterable[CompiledRule]) -> tuple[CompiledRule, ...]:
        """Publish a compiled rule set; returns the stored tuple."""
        entry = tuple(rules)
        with self._lock:
            self._store((tenant_id, schema_id), entry)
        return entry

    def get_or_load(
        self,
        tenant_id: str,
        schema_id: int,
        loader: Callable[[int], Iterable[CompiledRule]],
    ) -> tuple[CompiledRule, ...]:
        """Get from cache or load using provided loader.

        A load that races with an invalidation of the same key is returned
        to the caller but not published.
        """
        key = (tenant_id, schema_id)
        rules = self.get(tenant_id, schema_id)
        if rules is not None:
            return rules

        generation = self._generations.get(key, 0)
        entry = tuple(loader(schema_id))
        with self._lock:
            if self._generations.get(key, 0) == generation:
                self._store(key, entry)
        return entry

    def invalidate(self, tenant_id: str, schema_id: int) -> bool:
        """Invalidate one schema's compiled rules.

        Returns:
            True if the schema was in cache
        """
        key = (tenant_id, schema_id)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            return self._cache.pop(key, None) is not None

    def invalidate_all(self) -> int:
        """Invalidate everything.

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            count = len(self._cache)
            for key in list(self._generations) + list(self._cache):
                self._generations[key] = self._generations.get(key, 0) + 1
            self._cache.clear()
            return count

    def contains(self, tenant_id: str, schema_id: int) -> bool:
        return (tenant_id, schema_id) in self._cache

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0.0,
                "cached_schemas": [f"{tenant}:{schema_id}" for tenant, schema_id in self._cache],
            }

    def _store(self, key: CacheKey, entry: tuple[CompiledRule, ...]) -> None:
        # Simple eviction: drop the oldest half when full
        if key not in self._cache and len(self._cache) >= self._max_size:
            for old in list(self._cache)[: max(1, len(self._cache) // 2)]:
                del self._cache[old]
        self._cache[key] = entry


# Global cache instance
_global_cache: CompiledRuleCache | None = None


def get_rule_cache() -> CompiledRuleCache:
    """Get or create the global compiled-rule cache."""
    global _global_cache
    if _global_cache is None:
        _global_cache = CompiledRuleCache()
    return _global_cache


def reset_rule_cache() -> None:
    """Reset the global compiled-rule cache."""
    global _global_cache
    _global_cache = None
