"""Read-through cache for paginated list queries.

Backed by ``cachetools.TTLCache``: entries expire after ``ttl_seconds`` and
the least recently used entries are evicted once the estimated byte budget is
exceeded. A background loop sweeps expired entries every
``purge_interval_seconds`` regardless of access pattern.

Writes do not invalidate entries unless ``invalidate_on_write`` is enabled on
the repositories, so a cached page may be stale for up to ``ttl_seconds``.
"""

import json
import threading
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

from cachetools import TTLCache

from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_BYTES = 1024 * 1024 * 1024  # 1GB
DEFAULT_TTL_SECONDS = 4 * 60 * 60
DEFAULT_PURGE_INTERVAL_SECONDS = 4 * 60 * 60

_MISSING = object()


class CacheKey(NamedTuple):
    entity: str
    page: int
    page_size: int
    order: str


def estimate_bytes(value: Any) -> int:
    """Approximate serialized size of a cached page."""
    return len(json.dumps(value, default=str).encode("utf-8"))


class ResultCache:
    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        purge_interval_seconds: float = DEFAULT_PURGE_INTERVAL_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ):
        if max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.max_bytes = max_bytes
        self.ttl_seconds = ttl_seconds
        self.purge_interval_seconds = purge_interval_seconds
        self._cache: TTLCache = TTLCache(
            maxsize=max_bytes,
            ttl=ttl_seconds,
            timer=timer,
            getsizeof=estimate_bytes,
        )
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        # Bumped on invalidation so loads that raced a write are not stored.
        self._generations: Dict[str, int] = {}
        self._stop = threading.Event()
        self._purge_thread: Optional[threading.Thread] = None

    @staticmethod
    def signature(entity: str, page: int, page_size: int, order: str = "") -> CacheKey:
        return CacheKey(entity, int(page), int(page_size), order or "")

    def get(self, key: CacheKey, default: Any = None) -> Any:
        with self._lock:
            value = self._cache.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return default
            self._hits += 1
            return value

    def put(self, key: CacheKey, value: Any) -> bool:
        """
        Store a value.

        Returns:
            False if the value alone exceeds the byte budget and was not stored
        """
        with self._lock:
            try:
                self._cache[key] = value
            except ValueError:
                logger.warning(f"Result for {key} exceeds cache budget of {self.max_bytes} bytes; not cached")
                return False
        return True

    def get_or_load(self, key: CacheKey, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for ``key`` or call ``loader`` and cache its result.

        The loader runs outside the lock; concurrent misses on the same key
        may both load, and the last one stored wins. A result is not stored if
        its entity was invalidated while the loader ran.
        """
        with self._lock:
            cached = self.get(key, _MISSING)
            generation = self._generations.get(key.entity, 0)
        if cached is not _MISSING:
            return cached
        value = loader()
        with self._lock:
            if self._generations.get(key.entity, 0) == generation:
                self.put(key, value)
            else:
                logger.debug(f"Discarding {key}: {key.entity} changed while loading")
        return value

    def invalidate_entity(self, entity: str) -> int:
        """Drop every cached page for one entity. Returns the number dropped."""
        with self._lock:
            self._generations[entity] = self._generations.get(entity, 0) + 1
            stale = [key for key in list(self._cache.keys()) if key.entity == entity]
            for key in stale:
                self._cache.pop(key, None)
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached pages for {entity}")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def purge_expired(self) -> int:
        """Evict every expired entry now. Returns the number evicted."""
        with self._lock:
            expired = self._cache.expire()
        count = len(expired) if expired is not None else 0
        if count:
            logger.info(f"Purged {count} expired cache entries")
        return count

    def start_purge_loop(self) -> None:
        if self._purge_thread is not None and self._purge_thread.is_alive():
            return
        self._stop.clear()
        self._purge_thread = threading.Thread(target=self._purge_loop, name="result-cache-purge", daemon=True)
        self._purge_thread.start()

    def _purge_loop(self) -> None:
        while not self._stop.wait(self.purge_interval_seconds):
            self.purge_expired()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._purge_thread is not None:
            self._purge_thread.join(timeout)
            self._purge_thread = None

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "entries": len(self._cache),
                "bytes": self._cache.currsize,
                "max_bytes": self.max_bytes,
                "ttl_seconds": self.ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
