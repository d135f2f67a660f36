"""
Tests for cache backends.
"""

import fnmatch
from datetime import timedelta

import pytest

from bastion.implementations.cache.memory import MemoryCacheBackend
from bastion.implementations.cache.null import NullCacheBackend
from bastion.implementations.cache.redis import RedisCacheBackend


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the backend."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match="*"):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def flushdb(self):
        self.data.clear()

    async def aclose(self):
        pass


class TestMemoryCacheBackend:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        cache = MemoryCacheBackend()

        await cache.set("a", {"verdict": "allowed", "ability_id": 1})
        assert await cache.get("a") == {"verdict": "allowed", "ability_id": 1}
        assert await cache.delete("a") is True
        assert await cache.get("a") is None
        assert await cache.delete("a") is False

    @pytest.mark.asyncio
    async def test_expired_entries_are_dropped(self):
        cache = MemoryCacheBackend()
        await cache.set("a", 1, ttl=timedelta(seconds=-1))

        assert await cache.get("a") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_delete_pattern(self):
        cache = MemoryCacheBackend()
        for key in ("p:users:1:web", "p:users:11:web", "p:users:1:api"):
            await cache.set(key, True)

        assert await cache.delete_pattern("p:users:1:*") == 2
        assert cache.keys() == ["p:users:11:web"]

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = MemoryCacheBackend()
        await cache.set("a", 1)
        await cache.clear()
        assert len(cache) == 0


class TestNullCacheBackend:
    @pytest.mark.asyncio
    async def test_stores_nothing(self):
        cache = NullCacheBackend()

        assert await cache.set("a", 1) is False
        assert await cache.get("a") is None
        assert await cache.delete_pattern("*") == 0


class TestRedisCacheBackend:
    def test_client_requires_connect(self):
        with pytest.raises(RuntimeError):
            RedisCacheBackend().client

    @pytest.mark.asyncio
    async def test_values_are_json_under_prefix(self):
        cache = RedisCacheBackend(prefix="app:", default_ttl=60)
        cache._client = FakeRedis()

        await cache.set("k", {"verdict": "unresolved", "ability_id": None})

        assert cache._client.data == {"app:k": '{"verdict": "unresolved", "ability_id": null}'}
        assert cache._client.expiry["app:k"] == 60
        assert await cache.get("k") == {"verdict": "unresolved", "ability_id": None}

    @pytest.mark.asyncio
    async def test_delete_pattern_and_clear_stay_under_prefix(self):
        cache = RedisCacheBackend(prefix="app:")
        fake = FakeRedis()
        fake.data["other:k"] = "1"
        cache._client = fake

        await cache.set("users:1:web", True)
        await cache.set("users:2:web", True)

        assert await cache.delete_pattern("users:1:*") == 1
        await cache.clear()
        assert fake.data == {"other:k": "1"}

    @pytest.mark.asyncio
    async def test_disconnect(self):
        cache = RedisCacheBackend()
        cache._client = FakeRedis()

        await cache.disconnect()

        with pytest.raises(RuntimeError):
            cache.client
