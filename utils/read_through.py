"""
read_through.py
Purpose: serve upstream data through a TTLCache with retries and fallbacks.
Pseudocode:
1) Derive the cache key from request type and parameters.
2) Fresh entry -> return it without calling upstream.
3) Otherwise call the producer under the retry policy and store the result.
4) Retries exhausted -> return the fallback value, leaving the cache untouched.
"""
import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Optional

from utils.cache_keys import derive_key
from utils.retry import RetryExhaustedError, RetryPolicy, is_empty_result
from utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)


class FetchSource:
    CACHE = "cache"
    FRESH = "fresh"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class FetchResult:
    value: Any
    source: str
    key: str


class ReadThroughFetcher:
    def __init__(
        self,
        cache: TTLCache,
        retry_policy: Optional[RetryPolicy] = None,
        name: str = "cache",
        is_empty: Callable[[Any], bool] = is_empty_result,
    ):
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.name = name
        self.is_empty = is_empty
        self._counts = Counter()
        self._counts_lock = threading.Lock()

    def fetch(self, request_type: str, parameters, producer: Callable[[], Any], fallback: Callable[[], Any]):
        return self.fetch_with_source(request_type, parameters, producer, fallback).value

    def fetch_with_source(self, request_type, parameters, producer, fallback) -> FetchResult:
        key = derive_key(request_type, parameters)
        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry):
            self._record(FetchSource.CACHE)
            logger.debug("[%s] cache hit for %s", self.name, key)
            return FetchResult(entry.value, FetchSource.CACHE, key)
        return self._load(key, producer, fallback)

    def refresh(self, request_type: str, parameters, producer, fallback) -> FetchResult:
        """Bypass the freshness check and go straight to upstream."""
        return self._load(derive_key(request_type, parameters), producer, fallback)

    def _load(self, key, producer, fallback) -> FetchResult:
        try:
            value = self.retry_policy.call(producer, is_empty=self.is_empty)
        except RetryExhaustedError as exc:
            self._record(FetchSource.FALLBACK)
            logger.warning(
                "[%s] upstream failed for %s after %d attempt(s), serving fallback: %s",
                self.name,
                key,
                exc.attempts,
                exc.last_error,
            )
            return FetchResult(fallback(), FetchSource.FALLBACK, key)

        self.cache.put(key, value)
        self._record(FetchSource.FRESH)
        logger.info("[%s] fetched fresh data for %s", self.name, key)
        return FetchResult(value, FetchSource.FRESH, key)

    def _record(self, source: str):
        with self._counts_lock:
            self._counts[source] += 1

    def stats(self) -> dict:
        with self._counts_lock:
            counts = dict(self._counts)
        return {
            "name": self.name,
            "size": len(self.cache),
            "max_size": self.cache.max_size,
            "ttl_seconds": self.cache.ttl_seconds,
            FetchSource.CACHE: counts.get(FetchSource.CACHE, 0),
            FetchSource.FRESH: counts.get(FetchSource.FRESH, 0),
            FetchSource.FALLBACK: counts.get(FetchSource.FALLBACK, 0),
        }
