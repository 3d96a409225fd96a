import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

import cachetools

from spacegun.errors import CacheComputeError, SpacegunError

logger = logging.getLogger("spacegun.cache")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.

        Args:
            ttl: Seconds a computed value stays valid
            clock: Monotonic time source, replaceable in tests
        """
        self.ttl = ttl
        # Entries expire per key, measured from their own insertion time
        self._values: cachetools.TTLCache = cachetools.TTLCache(maxsize=math.inf, ttl=ttl, timer=clock)
        self._pending: Dict[K, "asyncio.Future[V]"] = {}

    async def calculate(self, key: K, supplier: Callable[[], Awaitable[V]]) -> V:
        """
        Return the cached value for key, computing it when missing or stale.

        Args:
            key: Cache key
            supplier: Coroutine function producing the value

        Returns:
            The cached or freshly computed value

        Logic:
        1. Serve the stored value if younger than ttl
        2. Join an in-flight computation for the same key if there is one
        3. Otherwise start the computation and store its result on success
        Failures are never stored, so the next call retries.
        """
        try:
            return self._values[key]
        except KeyError:
            pass

        pending = self._pending.get(key)
        if pending is None:
            logger.debug(f"Computing cache entry {key!r}")
            pending = asyncio.ensure_future(self._compute(key, supplier))
            self._pending[key] = pending

        try:
            # Shielded so a cancelled caller does not cancel the shared computation
            return await asyncio.shield(pending)
        except SpacegunError:
            raise
        except Exception as e:
            raise CacheComputeError(key, e) from e

    async def _compute(self, key: K, supplier: Callable[[], Awaitable[V]]) -> V:
        try:
            value = await supplier()
            self._values[key] = value
            return value
        finally:
            self._pending.pop(key, None)

    def invalidate(self, key: K) -> None:
        """Drop the stored value for key."""
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        self._values.expire()
        return len(self._values)
