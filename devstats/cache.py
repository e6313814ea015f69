"""In-memory TTL cache for data-API responses."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


HOUR_IN_SECONDS = 60 * 60


@dataclass
class CacheItem:
    data: Any
    timestamp: float
    expires_in: float


class TTLCache:
    """
    Key-value store whose entries expire after a per-entry TTL.

    The clock is injectable so staleness checks can be tested without
    sleeping. Timestamps are seconds since the epoch.
    """

    def __init__(self, default_ttl: float = HOUR_IN_SECONDS, clock: Callable[[], float] = time.time) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._items: Dict[str, CacheItem] = {}

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._items[key] = CacheItem(
            data=data,
            timestamp=self._clock(),
            expires_in=self._default_ttl if ttl is None else ttl,
        )

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, evicting it first if it has expired."""
        item = self._items.get(key)
        if item is None:
            return None
        if self._clock() - item.timestamp > item.expires_in:
            self.remove(key)
            return None
        return item.data

    def get_timestamp(self, key: str) -> Optional[float]:
        item = self._items.get(key)
        return item.timestamp if item is not None else None

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [key for key, item in self._items.items() if now - item.timestamp > item.expires_in]
        for key in expired:
            del self._items[key]
        return len(expired)

    def is_stale(self, key: str, changed_at: float) -> bool:
        """True when *key* was cached before the server reported a change at *changed_at*."""
        timestamp = self.get_timestamp(key)
        return (timestamp or 0) < changed_at

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
