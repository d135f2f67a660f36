"""
Cache backend factories keyed by the configured backend name.
"""

from typing import Any, Callable

from bastion.core.config import CacheSettings
from bastion.core.exceptions import ConfigurationError
from bastion.core.interfaces.cache import CacheBackend


def _create_memory_cache(settings: CacheSettings) -> CacheBackend:
    from bastion.implementations.cache.memory import MemoryCacheBackend
    return MemoryCacheBackend(default_ttl=settings.ttl)


def _create_redis_cache(settings: CacheSettings) -> CacheBackend:
    from bastion.implementations.cache.redis import RedisCacheBackend
    return RedisCacheBackend(redis_url=settings.redis_url, default_ttl=settings.ttl)


def _create_null_cache(settings: CacheSettings) -> CacheBackend:
    from bastion.implementations.cache.null import NullCacheBackend
    return NullCacheBackend()


cache_backends: dict[str, Callable[[CacheSettings], Any]] = {
    "memory": _create_memory_cache,
    "redis": _create_redis_cache,
    "null": _create_null_cache,
}


def create_cache_backend(settings: CacheSettings) -> CacheBackend:
    """
    Build the configured backend.

    A redis backend is returned unconnected; call connect() before use.
    """
    factory = cache_backends.get(settings.backend)
    if factory is None:
        available = list(cache_backends.keys())
        raise ConfigurationError(
            f"Unknown cache backend: '{settings.backend}'. Available: {available}"
        )
    return factory(settings)
