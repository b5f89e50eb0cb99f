# src/storage/ttl_cache.py
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict

from src.config.settings import AppSettings
from src.models.enums import CacheCategory, DataSource

DEFAULT_KEY = "default"


class CacheEntry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    category: CacheCategory
    key: str
    value: Any
    fetched_at: float


class TTLCache:
    """Process-wide store with an independent freshness window per category.

    Reads never fetch; filling the cache after a miss is up to the caller.
    Writers are last-writer-wins. Entries only go stale or get dropped by
    clear_all().
    """

    def __init__(
        self,
        ttls: Mapping[CacheCategory, float],
        clock: Callable[[], float] = time.monotonic,
    ):
        missing = [category.value for category in CacheCategory if category not in ttls]
        if missing:
            raise ValueError(f"No TTL configured for cache categories: {missing}")
        self._ttls: Dict[CacheCategory, float] = dict(ttls)
        self._clock = clock
        self._entries: Dict[Tuple[CacheCategory, str], CacheEntry] = {}

    @classmethod
    def from_settings(
        cls, app_settings: AppSettings, clock: Callable[[], float] = time.monotonic
    ) -> "TTLCache":
        """API categories get the short TTL, scraped HTML categories the long one."""
        ttls = {
            category: (
                app_settings.api_cache_ttl_seconds
                if category.source == DataSource.API
                else app_settings.html_cache_ttl_seconds
            )
            for category in CacheCategory
        }
        return cls(ttls, clock=clock)

    def ttl_for(self, category: CacheCategory) -> float:
        return self._ttls[category]

    def get_entry(
        self, category: CacheCategory, key: str = DEFAULT_KEY
    ) -> Optional[CacheEntry]:
        entry = self._entries.get((category, key))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at < self._ttls[category]:
            return entry
        logger.debug(f"Cache entry {category.value}/{key} is stale")
        return None

    def get(self, category: CacheCategory, key: str = DEFAULT_KEY) -> Optional[Any]:
        """Fresh value for (category, key), or None on a miss."""
        entry = self.get_entry(category, key)
        return entry.value if entry is not None else None

    def set(self, category: CacheCategory, key: str = DEFAULT_KEY, value: Any = None) -> None:
        self._entries[(category, key)] = CacheEntry(
            category=category, key=key, value=value, fetched_at=self._clock()
        )
        logger.debug(f"Cached {category.value}/{key}")

    def clear_all(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cache cleared ({count} entries dropped)")

    def __len__(self) -> int:
        return len(self._entries)
