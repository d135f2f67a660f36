"""
Redis cache backend implementation.
"""

from __future__ import annotations

import json
from typing import Any
from datetime import timedelta

import redis.asyncio as redis


class RedisCacheBackend:
    """
    Redis cache backend implementation.

    Shared between processes, so an invalidation in one worker is seen
    by every other worker on its next check.

    Usage:
        cache = RedisCacheBackend(redis_url="redis://localhost:6379/0")
        await cache.connect()

        await cache.set("key", {"verdict": "allowed", "ability_id": 3}, ttl=300)
        value = await cache.get("key")
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "",
        default_ttl: int | None = None,
    ):
        self.redis_url = redis_url
        self.prefix = prefix
        self.default_ttl = default_ttl
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Cache not connected. Call connect() first.")
        return self._client

    def _key(self, key: str) -> str:
        """Prepend prefix to key."""
        return f"{self.prefix}{key}" if self.prefix else key

    def _ttl_seconds(self, ttl: int | timedelta | None) -> int | None:
        """Convert TTL to seconds."""
        if ttl is None:
            return self.default_ttl
        if isinstance(ttl, timedelta):
            return int(ttl.total_seconds())
        return ttl

    def _serialize(self, value: Any) -> str:
        """Serialize value to JSON string."""
        return json.dumps(value)

    def _deserialize(self, value: str | None) -> Any:
        """Deserialize JSON string to value."""
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    async def get(self, key: str) -> Any | None:
        """Get value by key."""
        value = await self.client.get(self._key(key))
        return self._deserialize(value)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | timedelta | None = None,
    ) -> bool:
        """Set value with optional TTL."""
        ttl_seconds = self._ttl_seconds(ttl)
        result = await self.client.set(
            self._key(key),
            self._serialize(value),
            ex=ttl_seconds,
        )
        return result is True

    async def delete(self, key: str) -> bool:
        """Delete key."""
        result = await self.client.delete(self._key(key))
        return result > 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching pattern."""
        keys = [key async for key in self.client.scan_iter(match=self._key(pattern))]
        if keys:
            return await self.client.delete(*keys)
        return 0

    async def clear(self) -> None:
        """Delete every key under the prefix (the whole database without one)."""
        if self.prefix:
            await self.delete_pattern("*")
        else:
            await self.client.flushdb()
