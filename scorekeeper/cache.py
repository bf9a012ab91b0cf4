from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def _prefix_of(key: str) -> str:
    return key.split(":", 1)[0]


class QueryCache:
    """
    Thread-safe TTL cache for query results.

    Keys are namespaced by container (`"games:{...}"`) so writes can drop every
    cached query for a container with `invalidate_prefix`. Each prefix also
    carries a generation counter that invalidation bumps: a reader takes
    `generation(prefix)` before querying the store and passes it to
    `set(..., if_generation=...)`, so a result read before a concurrent write
    is never stored after it.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._generations: DefaultDict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def generation(self, prefix: str) -> int:
        with self._lock:
            return self._generations[prefix]

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        if_generation: Optional[int] = None,
    ) -> bool:
        """Store `value`; with `if_generation`, only if the key's prefix has not been invalidated since."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if if_generation is not None and self._generations[_prefix_of(key)] != if_generation:
                logger.debug(f"Skipped caching {key}: invalidated while it was being read")
                return False
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._sweep_locked()
                if len(self._entries) >= self.max_size:
                    oldest = min(self._entries, key=lambda k: self._entries[k][1])
                    del self._entries[oldest]
            self._entries[key] = (value, self._clock() + ttl)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        marker = f"{prefix}:"
        with self._lock:
            self._generations[prefix] += 1
            stale = [k for k in self._entries if k.startswith(marker)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached queries for {prefix}")
        return len(stale)

    def sweep(self) -> int:
        with self._lock:
            removed = self._sweep_locked()
        if removed:
            logger.info(f"Cache sweep removed {removed} expired entries")
        return removed

    def clear(self) -> None:
        with self._lock:
            for prefix in {_prefix_of(k) for k in self._entries} | set(self._generations):
                self._generations[prefix] += 1
            self._entries.clear()

    def _sweep_locked(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)
