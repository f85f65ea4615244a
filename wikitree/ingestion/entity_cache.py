"""
Process-wide memoization for Wikidata lookups.

The cache is an explicit object created once at application start and handed
to the repository, rather than module-level state. Resolved values are kept
for the life of the cache; concurrent requests for the same key share a single
in-flight task. A lookup that resolves to None (or raises) is not memoized, so
a later run can try again.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MemoCache(Generic[K, V]):
    """Append-only async memo table with in-flight deduplication."""

    def __init__(self, name: str = "cache"):
        self.name = name
        self._values: Dict[K, V] = {}
        self._inflight: Dict[K, "asyncio.Task[Optional[V]]"] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: K) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def peek(self, key: K) -> Optional[V]:
        return self._values.get(key)

    async def get_or_fetch(self, key: K, fetch: Callable[[K], Awaitable[Optional[V]]]) -> Optional[V]:
        """
        Return the cached value for `key`, calling `fetch(key)` at most once
        across concurrent callers.
        """
        if key in self._values:
            self.hits += 1
            return self._values[key]

        # Check-then-insert has no await in between, so it is atomic on the loop
        task = self._inflight.get(key)
        if task is None:
            self.misses += 1
            task = asyncio.ensure_future(self._resolve(key, fetch))
            self._inflight[key] = task
        else:
            self.hits += 1
        return await asyncio.shield(task)

    async def _resolve(self, key: K, fetch: Callable[[K], Awaitable[Optional[V]]]) -> Optional[V]:
        try:
            value = await fetch(key)
        finally:
            self._inflight.pop(key, None)
        if value is not None:
            self._values[key] = value
        else:
            logger.debug("%s: not memoizing empty result for %s", self.name, key)
        return value

    def clear(self) -> None:
        self._values.clear()
        self.hits = 0
        self.misses = 0


class EntityCache:
    """Holder for the item and property memo tables shared by all pipeline runs."""

    def __init__(self) -> None:
        self.entities: MemoCache = MemoCache("entities")
        self.properties: MemoCache = MemoCache("properties")

    def stats(self) -> Dict[str, int]:
        return {
            "entities": len(self.entities),
            "properties": len(self.properties),
            "entity_hits": self.entities.hits,
            "entity_misses": self.entities.misses,
        }
