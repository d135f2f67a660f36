"""
Backend implementations for core interfaces.
"""

from bastion.implementations.cache import MemoryCacheBackend, NullCacheBackend, RedisCacheBackend
from bastion.implementations.register import create_cache_backend

__all__ = [
    "MemoryCacheBackend",
    "NullCacheBackend",
    "RedisCacheBackend",
    "create_cache_backend",
]
