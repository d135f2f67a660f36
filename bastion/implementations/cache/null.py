"""
Null cache backend.

Stores nothing; every lookup misses. Lets a deployment turn caching off
without changing the clipboard in front of the resolver.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any


class NullCacheBackend:
    async def get(self, key: str) -> Any | None:
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | timedelta | None = None,
    ) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def clear(self) -> None:
        return None
