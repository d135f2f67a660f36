"""
Cache backend protocol.
Implementations: MemoryCacheBackend, RedisCacheBackend, NullCacheBackend
"""
from __future__ import annotations

from typing import Protocol, Any
from datetime import timedelta


class CacheBackend(Protocol):
    """
    Protocol for verdict cache backends.

    Values are JSON-compatible (dicts, lists, strings, numbers, None).
    Backend failures propagate to the caller.
    """

    async def get(self, key: str) -> Any | None:
        """Get value by key. Returns None if not found."""
        ...

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | timedelta | None = None,
    ) -> bool:
        """Set value with optional TTL (seconds or timedelta)."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if deleted."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern (e.g., 'bastion:users:5:*'). Returns count."""
        ...

    async def clear(self) -> None:
        """Remove every entry."""
        ...
