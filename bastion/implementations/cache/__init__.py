"""Cache backend implementations."""

from bastion.implementations.cache.memory import MemoryCacheBackend
from bastion.implementations.cache.null import NullCacheBackend
from bastion.implementations.cache.redis import RedisCacheBackend

__all__ = ["MemoryCacheBackend", "NullCacheBackend", "RedisCacheBackend"]
