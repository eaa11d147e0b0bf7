import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.core.cache import caches
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass(frozen=True)
class CacheEntry:
    result: Any
    stored_at: float


class TTLDistanceCache:
    """Process-local distance cache with a fixed time-to-live.

    Expired entries count as a miss on read but stay in memory until sweep()
    runs or the key is written again. The clock is injectable so tests can
    move time forward deterministically.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at < self.ttl_seconds

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not self._is_live(entry, self._clock()):
            return None
        return entry

    def put(self, key: str, result: Any) -> CacheEntry:
        entry = CacheEntry(result=result, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if not self._is_live(e, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired distance cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DjangoDistanceCache:
    """Distance cache backed by a configured Django cache (shared between processes)."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, alias: str = "distance"):
        self.ttl_seconds = ttl_seconds
        self.alias = alias

    @property
    def _backend(self):
        return caches[self.alias]

    @staticmethod
    def _backend_key(key: str) -> str:
        # Addresses contain spaces and arbitrary unicode; memcached rejects both
        return "distance:" + hashlib.sha256(key.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._backend.get(self._backend_key(key))

    def put(self, key: str, result: Any) -> CacheEntry:
        entry = CacheEntry(result=result, stored_at=time.time())
        try:
            self._backend.set(self._backend_key(key), entry, timeout=self.ttl_seconds)
        except Exception:
            logger.exception("Failed to set distance cache (non-fatal)")
        return entry

    def sweep(self) -> int:
        # The backend expires keys on its own
        return 0

    def clear(self) -> None:
        """Flush the whole cache alias; give distances their own alias."""
        self._backend.clear()


def build_distance_cache():
    backend = getattr(settings, "DISTANCE_CACHE_BACKEND", "memory")
    ttl = getattr(settings, "DISTANCE_CACHE_TTL", DEFAULT_TTL_SECONDS)
    if backend == "memory":
        return TTLDistanceCache(ttl_seconds=ttl)
    if backend == "django":
        return DjangoDistanceCache(ttl_seconds=ttl, alias=getattr(settings, "DISTANCE_CACHE_ALIAS", "distance"))
    raise ImproperlyConfigured(f"Unknown DISTANCE_CACHE_BACKEND {backend!r}; expected 'memory' or 'django'")
