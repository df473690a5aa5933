"""
Unit Tests for the Redis Cache Manager.

Tests:
- TTL handling on writes
- Pattern invalidation, including glob escaping of identifiers
- Degradation to a miss when Redis is unreachable
"""

import pytest

from eligibility_service.services.cache import CacheManager, escape_glob


@pytest.mark.unit
class TestCacheRoundTrip:
    """Reads and writes against a healthy cache."""

    @pytest.mark.asyncio
    async def test_set_json_uses_default_ttl(self, cache, fake_redis):
        assert await cache.set_json("eligibility:M1:P1:2025-08-13", {"eligible": True})

        assert fake_redis.ttls["eligibility:M1:P1:2025-08-13"] == 300
        assert await cache.get_json("eligibility:M1:P1:2025-08-13") == {"eligible": True}

    @pytest.mark.asyncio
    async def test_explicit_ttl_overrides_default(self, cache, fake_redis):
        await cache.set("coverage:M1:2025-08-13", "[]", ttl=60)
        assert fake_redis.ttls["coverage:M1:2025-08-13"] == 60

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, cache):
        assert await cache.get_json("eligibility:nobody:P1:2025-08-13") is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self, cache, fake_redis):
        fake_redis.data["benefits:M1:all"] = "{not json"
        assert await cache.get_json("benefits:M1:all") is None

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, cache):
        await cache.set("benefits:M1:all", "[]")
        assert await cache.exists("benefits:M1:all")
        assert await cache.delete("benefits:M1:all")
        assert not await cache.exists("benefits:M1:all")


@pytest.mark.unit
class TestInvalidation:
    """Pattern deletes scoped to a member or a coverage."""

    @pytest.mark.asyncio
    async def test_member_pattern_hits_every_namespace(self, cache, fake_redis):
        for key in (
            "eligibility:M1:P1:2025-08-13",
            "coverage:M1:2025-08-13",
            "benefits:M1:all",
            "eligibility:M10:P1:2025-08-13",
        ):
            fake_redis.data[key] = "{}"

        deleted = await cache.delete_pattern(CacheManager.pattern_for_member("M1"))

        assert deleted == 3
        assert list(fake_redis.data) == ["eligibility:M10:P1:2025-08-13"]

    @pytest.mark.asyncio
    async def test_glob_characters_in_identifiers_are_literal(self, cache, fake_redis):
        fake_redis.data["coverage:M*:2025-08-13"] = "[]"
        fake_redis.data["coverage:M1:2025-08-13"] = "[]"

        deleted = await cache.delete_pattern(CacheManager.pattern_for_member("M*"))

        assert deleted == 1
        assert "coverage:M1:2025-08-13" in fake_redis.data

    @pytest.mark.asyncio
    async def test_coverage_pattern(self, cache, fake_redis):
        fake_redis.data["verification:cov-1"] = "{}"
        fake_redis.data["verification:cov-12"] = "{}"

        assert await cache.delete_pattern(CacheManager.pattern_for_coverage("cov-1")) == 1
        assert "verification:cov-12" in fake_redis.data

    @pytest.mark.asyncio
    async def test_no_matches(self, cache):
        assert await cache.delete_pattern("*:ghost:*") == 0

    def test_escape_glob(self):
        assert escape_glob("a*b?c[d]e\\f") == "a\\*b\\?c\\[d\\]e\\\\f"
        assert escape_glob("M123") == "M123"


@pytest.mark.unit
class TestDegradedCache:
    """Redis failures never reach the caller."""

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, cache, fake_redis):
        fake_redis.data["benefits:M1:all"] = "[]"
        fake_redis.fail = True
        assert await cache.get_json("benefits:M1:all") is None

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(self, cache, fake_redis):
        fake_redis.fail = True
        assert await cache.set_json("benefits:M1:all", []) is False
        assert await cache.delete("benefits:M1:all") is False
        assert await cache.exists("benefits:M1:all") is False

    @pytest.mark.asyncio
    async def test_invalidation_failure_deletes_nothing(self, cache, fake_redis):
        fake_redis.fail = True
        assert await cache.delete_pattern("*:M1:*") == 0

    @pytest.mark.asyncio
    async def test_admin_operations_report_failure(self, cache, fake_redis):
        fake_redis.fail = True
        assert await cache.flush() is False
        assert await cache.info() == {}
        assert await cache.ping() is False


@pytest.mark.unit
class TestAdministration:
    @pytest.mark.asyncio
    async def test_flush_empties_cache(self, cache, fake_redis):
        fake_redis.data["benefits:M1:all"] = "[]"
        assert await cache.flush()
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_info(self, cache, fake_redis):
        fake_redis.data["benefits:M1:all"] = "[]"
        assert await cache.info() == {
            "cached_entries": 1,
            "cache_size": "1.00M",
            "eviction_count": 0,
        }
