"""Read-through caches for marketplace reference data.

Caches are plain objects created per batch run (or injected by the caller)
rather than module state. Concurrent misses on the same key may both load;
the second write stores the same value and is harmless.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

from src.common.models import CategoryFilter, PricePoint

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ReadThroughCache(Generic[K, V]):
    """In-memory cache with an async loader on miss."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[K, V] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: K) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        return self._entries.get(key)

    def put(self, key: K, value: V) -> None:
        self._entries[key] = value

    async def get_or_load(self, key: K, loader: Callable[[K], Awaitable[V]]) -> V:
        """Return the cached value, loading and storing it on a miss."""
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = await loader(key)
        self._entries[key] = value
        return value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


class MarketplaceCache:
    """Caches for one pricing run: category filters and market price points.

    A price point entry of None records that the marketplace has no market
    price for that SKU, so it is not requested again.
    """

    def __init__(self) -> None:
        self.category_filters: ReadThroughCache[int, CategoryFilter] = ReadThroughCache(
            "category_filters"
        )
        self.price_points: ReadThroughCache[int, PricePoint | None] = ReadThroughCache(
            "price_points"
        )

    def stats(self) -> dict[str, dict[str, int]]:
        return {
            cache.name: {"entries": len(cache), "hits": cache.hits, "misses": cache.misses}
            for cache in (self.category_filters, self.price_points)
        }
