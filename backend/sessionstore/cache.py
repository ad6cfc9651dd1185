"""Short-lived cache for values looked up from Discord, such as member display names.

Backed by cachetools.TTLCache and local to the process. Concurrent misses
on one key share a single in-flight load.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes a miss from a cached None
_MISSING = object()


class AsyncTTLCache:
    def __init__(self, maxsize: int = 256, ttl: float = 300.0):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._inflight: dict[str, asyncio.Task] = {}

    def get(self, key: str) -> Any:
        """Cached value, or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the value for *key*, awaiting *loader* on a miss.

        A failing loader propagates to every waiter and caches nothing.
        """
        value = self.get(key)
        if value is not _MISSING:
            return value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, loader))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        value = await loader()
        self.set(key, value)
        logger.debug(f"Cached {key}")
        return value
