"""
In-memory cache backend for development, tests and single-process hosts.
"""

from __future__ import annotations

import fnmatch
from typing import Any
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """Cache entry with value and expiration."""
    value: Any
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return _utcnow() >= self.expires_at


class MemoryCacheBackend:
    """
    In-memory cache backend.

    Note: Not shared between processes. Invalidation in one process is
    invisible to the others.

    Usage:
        cache = MemoryCacheBackend()
        await cache.set("key", {"verdict": "allowed"}, ttl=60)
        value = await cache.get("key")
    """

    def __init__(self, default_ttl: int | None = None):
        self.default_ttl = default_ttl
        self._store: dict[str, CacheEntry] = {}

    def _ttl_seconds(self, ttl: int | timedelta | None) -> int | None:
        if ttl is None:
            return self.default_ttl
        if isinstance(ttl, timedelta):
            return int(ttl.total_seconds())
        return ttl

    def __len__(self) -> int:
        return len(self._store)

    def keys(self) -> list[str]:
        return [k for k, v in self._store.items() if not v.is_expired]

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            del self._store[key]
            return None
        return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | timedelta | None = None,
    ) -> bool:
        ttl_seconds = self._ttl_seconds(ttl)
        expires_at = None
        if ttl_seconds:
            expires_at = _utcnow() + timedelta(seconds=ttl_seconds)

        self._store[key] = CacheEntry(value=value, expires_at=expires_at)
        return True

    async def delete(self, key: str) -> bool:
        if key in self._store:
            del self._store[key]
            return True
        return False

    async def delete_pattern(self, pattern: str) -> int:
        matching_keys = [k for k in self._store if fnmatch.fnmatchcase(k, pattern)]
        for key in matching_keys:
            del self._store[key]
        return len(matching_keys)

    async def clear(self) -> None:
        """Clear all cache entries."""
        self._store.clear()
