import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from salon_app.core.config import settings
from salon_app.core.logger import logger


class CacheCategory(str, Enum):
    STATS = "stats"
    APPOINTMENTS = "appointments"
    STAFF = "staff"
    CLIENTS = "clients"
    REVENUE = "revenue"
    ANALYTICS = "analytics"


CacheKey = Tuple[CacheCategory, Tuple[Tuple[str, Hashable], ...]]


def make_key(category: CacheCategory, **params) -> CacheKey:
    return (category, tuple(sorted(params.items())))


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """
    Time-boxed memoization for dashboard data.

    Each fetch for a key takes the next generation number. A result is stored only
    if no newer fetch or invalidation happened for that key while it was in flight,
    so a slow, superseded response can never overwrite fresher data.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._generations: Dict[CacheKey, int] = {}

    def get(self, key: CacheKey) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def _next_generation(self, key: CacheKey) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    async def get_or_fetch(
        self,
        key: CacheKey,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        force: bool = False,
        cache_if: Optional[Callable[[Any], bool]] = None,
    ) -> Any:
        """
        Returns the cached value for `key`, fetching it when missing, expired or forced.
        Results rejected by `cache_if` are returned but not stored, so the next call fetches again.
        """
        if not force:
            cached = self.get(key)
            if cached is not None:
                return cached

        generation = self._next_generation(key)
        value = await fetch()

        if cache_if is not None and not cache_if(value):
            logger.debug(f"⏭️ Not caching empty result for {key[0].value}")
        elif self._generations.get(key) == generation:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + (self.ttl if ttl is None else ttl))
        else:
            logger.debug(f"♻️ Dropping superseded result for {key[0].value} (generation {generation})")
        return value

    def invalidate(self, key: Optional[CacheKey] = None) -> None:
        """Drops one key, or everything when no key is given."""
        keys = [key] if key is not None else list(set(self._entries) | set(self._generations))
        for k in keys:
            self._entries.pop(k, None)
            # Results of fetches started before the invalidation must not land
            self._next_generation(k)
        logger.debug(f"🧹 Cache invalidated ({'all' if key is None else key[0].value})")
