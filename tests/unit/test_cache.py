"""
Unit Tests - Embedding Cache

Tests for size accounting, eviction and capacity errors.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from gleaner.core.exceptions import CacheCapacityError, ConfigurationError
from gleaner.core.types import CacheEntry
from gleaner.knowledge.cache import EmbeddingCache

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_entry(key: str, size: int, age: int = 0) -> CacheEntry:
    """Entry of exactly `size` bytes (content plus one float), `age` seconds after BASE_TIME."""
    assert size >= 8
    return CacheEntry.create(
        key,
        "x" * (size - 8),
        [0.0],
        source_ref="test",
        timestamp=BASE_TIME + timedelta(seconds=age),
    )


class TestCacheEntry:
    """Tests for CacheEntry sizing."""

    def test_size_counts_content_and_vector(self):
        entry = CacheEntry.create("k", "héllo", [0.1, 0.2, 0.3])
        # "héllo" is 6 bytes in UTF-8
        assert entry.size_bytes == 6 + 3 * 8


class TestEmbeddingCache:
    """Tests for EmbeddingCache."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        cache = EmbeddingCache(max_size=1000)
        assert await cache.get("absent") is None

    @pytest.mark.asyncio
    async def test_add_then_get(self):
        cache = EmbeddingCache(max_size=1000)
        entry = make_entry("a", 100)

        await cache.add("a", entry)

        assert await cache.get("a") == entry
        assert cache.current_size == 100
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_readd_same_key_does_not_double_count(self):
        cache = EmbeddingCache(max_size=1000)

        await cache.add("a", make_entry("a", 100))
        await cache.add("a", make_entry("a", 200, age=1))

        assert cache.current_size == 200
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_fill_to_exact_capacity_does_not_evict(self):
        cache = EmbeddingCache(max_size=1000)
        for i in range(10):
            await cache.add(f"k{i}", make_entry(f"k{i}", 100, age=i))

        assert cache.current_size == 1000
        assert len(cache) == 10

    @pytest.mark.asyncio
    async def test_overflow_evicts_oldest_to_low_water_mark(self):
        cache = EmbeddingCache(max_size=1000)
        for i in range(10):
            await cache.add(f"k{i}", make_entry(f"k{i}", 100, age=i))

        await cache.add("new", make_entry("new", 100, age=100))

        # 1000 -> evict two oldest -> 800 -> insert -> 900
        assert cache.current_size == 900
        assert await cache.get("k0") is None
        assert await cache.get("k1") is None
        assert await cache.get("k2") is not None
        assert await cache.get("new") is not None

        stats = await cache.stats()
        assert stats.evictions == 2

    @pytest.mark.asyncio
    async def test_eviction_order_follows_timestamp_not_insertion(self):
        cache = EmbeddingCache(max_size=300)
        await cache.add("young", make_entry("young", 100, age=50))
        await cache.add("old", make_entry("old", 100, age=1))
        await cache.add("mid", make_entry("mid", 100, age=10))

        await cache.add("next", make_entry("next", 100, age=60))

        assert await cache.get("old") is None
        assert await cache.get("young") is not None

    @pytest.mark.asyncio
    async def test_large_entry_evicts_until_it_fits(self):
        cache = EmbeddingCache(max_size=1000)
        for i in range(10):
            await cache.add(f"k{i}", make_entry(f"k{i}", 100, age=i))

        await cache.add("big", make_entry("big", 500, age=100))

        assert cache.current_size <= 1000
        assert await cache.get("big") is not None

    @pytest.mark.asyncio
    async def test_entry_larger_than_cache_is_rejected(self):
        cache = EmbeddingCache(max_size=100)
        await cache.add("a", make_entry("a", 50))

        with pytest.raises(CacheCapacityError) as exc_info:
            await cache.add("huge", make_entry("huge", 101))

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.entry_size == 101
        assert exc_info.value.max_size == 100
        # Nothing was evicted for an entry that can never fit
        assert await cache.get("a") is not None
        assert cache.current_size == 50

    @pytest.mark.asyncio
    async def test_size_bound_holds_for_random_sequences(self):
        rng = random.Random(1234)
        max_size = 5000
        cache = EmbeddingCache(max_size=max_size)

        for i in range(500):
            size = rng.randint(8, 900)
            key = f"k{rng.randint(0, 80)}"
            before = await cache.stats()

            await cache.add(key, make_entry(key, size, age=i))

            assert cache.current_size <= max_size
            after = await cache.stats()
            if after.evictions > before.evictions:
                assert cache.current_size <= 0.8 * max_size + size

    @pytest.mark.asyncio
    async def test_stats_count_hits_and_misses(self):
        cache = EmbeddingCache(max_size=1000)
        await cache.add("a", make_entry("a", 100))

        await cache.get("a")
        await cache.get("a")
        await cache.get("b")

        stats = await cache.stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.entries == 1

    @pytest.mark.asyncio
    async def test_remove_and_clear(self):
        cache = EmbeddingCache(max_size=1000)
        await cache.add("a", make_entry("a", 100))
        await cache.add("b", make_entry("b", 100))

        assert await cache.remove("a") is True
        assert await cache.remove("a") is False
        assert cache.current_size == 100

        await cache.clear()
        assert cache.current_size == 0
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_concurrent_adds_keep_accounting_consistent(self):
        cache = EmbeddingCache(max_size=2000)

        await asyncio.gather(
            *(cache.add(f"k{i}", make_entry(f"k{i}", 100, age=i)) for i in range(50))
        )

        stats = await cache.stats()
        assert stats.current_size <= 2000
        assert stats.current_size == stats.entries * 100

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            EmbeddingCache(max_size=0)
        with pytest.raises(ValueError):
            EmbeddingCache(max_size=100, evict_to_ratio=1.5)
