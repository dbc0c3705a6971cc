"""
Caching for derived schema data.

Column projections depend only on the model schema and the exclusion set,
so they are computed once per key and shared. Uses cachetools caches held by
a thread-safe singleton.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)

__all__ = ['Cache', 'memoize']


class Cache:
    """Cache manager for the pgadapter package.

    Thread-safe singleton that owns every named cache.
    """

    _instance = None
    _caches: dict[str, cachetools.Cache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 256, ttl: int | None = None) -> cachetools.Cache:
        """Get or create a cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds, None for a plain LRU cache

        Returns
            LRUCache, or TTLCache when a ttl is given
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    if ttl is None:
                        self._caches[name] = cachetools.LRUCache(maxsize=maxsize)
                    else:
                        self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()


def memoize(cache_name: str, maxsize: int = 256):
    """Decorator caching a pure function's result in a named LRU cache.

    Arguments must be hashable; they form the cache key as given.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args):
            cache = Cache.get_instance().get_cache(cache_name, maxsize=maxsize)
            key = cachetools.keys.hashkey(*args)
            with Cache._lock:
                if key in cache:
                    return cache[key]
            logger.debug(f'Cache miss for {func.__name__}{args!r}')
            result = func(*args)
            with Cache._lock:
                cache[key] = result
            return result

        return wrapper
    return decorator
