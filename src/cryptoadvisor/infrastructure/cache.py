# src/cryptoadvisor/infrastructure/cache.py
import threading
import time
from typing import Dict, Any, Optional, Tuple


class InMemoryCache:
    """
    A small in-memory cache with per-item Time-To-Live (TTL).

    Shared between the scheduler thread and request handlers, so access is
    serialized with a lock.
    """

    def __init__(self, ttl_seconds: int = 60):
        """
        :param ttl_seconds: The default lifespan for an item if not specified otherwise.
        """
        self._default_ttl_seconds = ttl_seconds
        # { key: (value, expiry_timestamp) }
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the item if present and not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, expiry_timestamp = entry
            if time.time() > expiry_timestamp:
                del self._cache[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        with self._lock:
            self._cache[key] = (value, time.time() + ttl)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
