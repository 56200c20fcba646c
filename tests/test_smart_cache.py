"""
Tests for the analysis result cache.
"""

import pytest

from chain_insight.cache.smart_cache import (
    DEFAULT_POLICIES,
    MINUTE,
    CacheKind,
    ExpiryPolicy,
    SmartCache,
    fingerprint,
)


@pytest.fixture
def cache(clock):
    return SmartCache(clock=clock)


class TestExpiryPolicy:
    """Test age-dependent TTL selection."""

    def test_transaction_policy_boundary(self):
        policy = DEFAULT_POLICIES[CacheKind.TRANSACTION]
        assert policy.ttl_for_age(599) == 5 * MINUTE
        assert policy.ttl_for_age(600) == 60 * MINUTE

    def test_block_policy_boundary(self):
        policy = DEFAULT_POLICIES[CacheKind.BLOCK]
        assert policy.ttl_for_age(30 * MINUTE - 1) == 5 * MINUTE
        assert policy.ttl_for_age(30 * MINUTE) == 30 * MINUTE

    def test_effective_ttl_uses_kind(self, cache):
        assert cache.effective_ttl(CacheKind.TRANSACTION, 700) == 3600
        assert cache.effective_ttl(CacheKind.BLOCK, 700) == 300
        assert cache.effective_ttl("block", 1800) == 1800


class TestSmartCacheExpiry:
    """Test expiry measured from the last refresh."""

    @pytest.mark.asyncio
    async def test_fresh_transaction_entry_expires_after_five_minutes(self, cache, clock):
        """An entry read 4 minutes after insertion is a hit, at 7 minutes a miss."""
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"value": 1}, CacheKind.TRANSACTION)

        clock.advance(4 * MINUTE)
        assert await cache.get(key) == {"value": 1}

        clock.advance(3 * MINUTE)
        assert await cache.get(key) is None
        assert key not in await cache.keys()

    @pytest.mark.asyncio
    async def test_settled_ttl_still_expires(self, cache, clock):
        """At 61 minutes the one-hour TTL applies and has elapsed."""
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"value": 1}, CacheKind.TRANSACTION)

        clock.advance(61 * MINUTE)
        assert await cache.get(key) is None

    @pytest.mark.asyncio
    async def test_unread_entry_is_served_again_once_settled(self, cache, clock):
        """Past 10 minutes of age the one-hour TTL applies, even if no read removed it at 6."""
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"value": 1}, CacheKind.TRANSACTION)

        clock.advance(11 * MINUTE)
        assert await cache.get(key) == {"value": 1}

    @pytest.mark.asyncio
    async def test_read_in_expired_gap_removes_entry_for_good(self, cache, clock):
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"value": 1}, CacheKind.TRANSACTION)

        clock.advance(6 * MINUTE)
        assert await cache.get(key) is None

        clock.advance(5 * MINUTE)
        assert await cache.get(key) is None

    @pytest.mark.asyncio
    async def test_block_entry_fresh_window(self, cache, clock):
        key = cache.block_key(998, 1234)
        await cache.set(key, {"block": 1234}, CacheKind.BLOCK)

        clock.advance(5 * MINUTE)
        assert await cache.get(key) == {"block": 1234}

        clock.advance(1)
        assert await cache.get(key) is None

    @pytest.mark.asyncio
    async def test_clean_expired_removes_only_expired(self, cache, clock):
        await cache.set("transaction_998_old", {"n": 1}, CacheKind.TRANSACTION)
        clock.advance(6 * MINUTE)
        await cache.set("transaction_998_new", {"n": 2}, CacheKind.TRANSACTION)

        removed = await cache.clean_expired()

        assert removed == 1
        assert await cache.keys() == ["transaction_998_new"]
        stats = await cache.get_stats()
        assert stats["expired_cleaned"] == 1
        assert stats["last_cleanup"] == clock.now

    @pytest.mark.asyncio
    async def test_custom_policies(self, clock):
        policies = {
            CacheKind.TRANSACTION: ExpiryPolicy(freshness_threshold=60, fresh_ttl=10, settled_ttl=100),
            CacheKind.BLOCK: ExpiryPolicy(freshness_threshold=60, fresh_ttl=10, settled_ttl=100),
        }
        cache = SmartCache(policies=policies, clock=clock)
        await cache.set("k", "v", CacheKind.BLOCK)

        clock.advance(11)
        assert await cache.get("k") is None


class TestSmartCacheRefresh:
    """Test fingerprint-based refresh on re-insertion."""

    @pytest.mark.asyncio
    async def test_same_fingerprint_refreshes_timestamp_only(self, cache, clock):
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"a": 1, "b": 2}, CacheKind.TRANSACTION)
        created = (await cache.entry(key)).created_at

        clock.advance(4 * MINUTE)
        await cache.set(key, {"b": 2, "a": 1}, CacheKind.TRANSACTION)
        entry = await cache.entry(key)

        assert entry.created_at == created
        assert entry.refreshed_at == clock.now
        assert entry.access_count == 1

        # Expiry restarts from the refresh
        clock.advance(4 * MINUTE)
        assert await cache.get(key) == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_changed_data_replaces_entry(self, cache, clock):
        key = cache.transaction_key(998, "0xabc")
        await cache.set(key, {"a": 1}, CacheKind.TRANSACTION)
        clock.advance(60)
        await cache.set(key, {"a": 2}, CacheKind.TRANSACTION)

        entry = await cache.entry(key)
        assert entry.data == {"a": 2}
        assert entry.created_at == clock.now

    def test_fingerprint_ignores_key_order(self):
        assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})
        assert fingerprint({"a": 1}) != fingerprint({"a": 2})


class TestSmartCacheCapacity:
    """Test batch eviction of least recently accessed entries."""

    @pytest.mark.asyncio
    async def test_eviction_batch_keeps_most_recent(self, clock):
        cache = SmartCache(max_size=10, eviction_fraction=0.2, clock=clock)
        for index in range(10):
            await cache.set(f"transaction_998_{index}", index, CacheKind.TRANSACTION)
            clock.advance(1)

        # Touch the oldest entry so it survives eviction
        await cache.get("transaction_998_0")
        clock.advance(1)
        await cache.set("transaction_998_new", "new", CacheKind.TRANSACTION)

        keys = await cache.keys()
        assert len(keys) <= 8
        assert "transaction_998_new" in keys
        assert "transaction_998_0" in keys
        assert "transaction_998_9" in keys
        assert "transaction_998_1" not in keys
        stats = await cache.get_stats()
        assert stats["access_stats"]["evicted"] == 3

    @pytest.mark.asyncio
    async def test_replacing_existing_key_does_not_evict(self, clock):
        cache = SmartCache(max_size=2, clock=clock)
        await cache.set("a", 1, CacheKind.BLOCK)
        await cache.set("b", 2, CacheKind.BLOCK)
        await cache.set("a", 3, CacheKind.BLOCK)

        assert sorted(await cache.keys()) == ["a", "b"]

    def test_max_size_must_be_positive(self):
        with pytest.raises(ValueError):
            SmartCache(max_size=0)


class TestSmartCacheStats:
    """Test access statistics."""

    @pytest.mark.asyncio
    async def test_hits_and_misses(self, cache):
        key = cache.transaction_key(998, "0xabc")
        assert await cache.get(key) is None
        await cache.set(key, {"x": 1}, CacheKind.TRANSACTION)
        await cache.get(key)
        await cache.get(key)

        stats = await cache.get_stats()
        assert stats["access_stats"]["hits"] == 2
        assert stats["access_stats"]["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(200 / 3)
        assert stats["total_access"] == 3
        assert stats["average_access_per_entry"] == 3.0
        assert stats["kind_breakdown"] == {"transaction": 1}

    @pytest.mark.asyncio
    async def test_has_does_not_count(self, cache):
        await cache.set("block_998_1", {}, CacheKind.BLOCK)
        assert await cache.has("block_998_1") is True
        assert await cache.has("block_998_2") is False

        stats = await cache.get_stats()
        assert stats["access_stats"] == {"hits": 0, "misses": 0, "evicted": 0}

    @pytest.mark.asyncio
    async def test_empty_stats(self, cache):
        stats = await cache.get_stats()
        assert stats["size"] == 0
        assert stats["hit_rate"] == 0.0
        assert stats["average_access_per_entry"] == 0.0


class TestSmartCacheInvalidation:
    """Test pattern invalidation, preload and clear."""

    @pytest.mark.asyncio
    async def test_invalidate_pattern(self, cache):
        await cache.set(cache.transaction_key(998, "0x1"), 1, CacheKind.TRANSACTION)
        await cache.set(cache.transaction_key(99998, "0x2"), 2, CacheKind.TRANSACTION)
        await cache.set(cache.block_key(998, 5), 3, CacheKind.BLOCK)

        removed = await cache.invalidate_pattern(r"^transaction_")

        assert removed == 2
        assert await cache.keys() == ["block_998_5"]

    @pytest.mark.asyncio
    async def test_preload_and_clear(self, cache):
        await cache.preload("block_998_7", {"n": 7}, "block")
        assert await cache.has("block_998_7")

        await cache.clear()
        assert await cache.keys() == []

    def test_key_format(self):
        assert SmartCache.transaction_key(998, "0xab") == "transaction_998_0xab"
        assert SmartCache.block_key(99998, 12) == "block_99998_12"
