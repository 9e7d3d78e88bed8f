import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float


def is_fresh(entry: CacheEntry, now: float, window_seconds: float) -> bool:
    return (now - entry.stored_at) < window_seconds


class TTLCache:
    """
    Bounded key -> CacheEntry store with a single freshness window.

    Lookups never drop stale entries; a stale entry stays until the next
    successful write for its key replaces it or LRU eviction pushes it out.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int = 256,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.clock = clock
        self._lock = threading.Lock()
        self._data = OrderedDict()

    def __len__(self):
        with self._lock:
            return len(self._data)

    def __contains__(self, key):
        with self._lock:
            return key in self._data

    def get(self, key) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            self._data.move_to_end(key)
            return entry

    def put(self, key, value, now: Optional[float] = None) -> CacheEntry:
        stored_at = self.clock() if now is None else now
        entry = CacheEntry(key=key, value=value, stored_at=stored_at)
        with self._lock:
            self._data[key] = entry
            self._data.move_to_end(key)
            while len(self._data) > self.max_size:
                self._data.popitem(last=False)
        return entry

    def is_fresh(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        return is_fresh(entry, now, self.ttl_seconds)

    def get_fresh(self, key, default=None):
        entry = self.get(key)
        if entry is None or not self.is_fresh(entry):
            return default
        return entry.value
