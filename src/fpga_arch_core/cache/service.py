# src/fpga_arch_core/cache/service.py
"""
Provides the cache service for results derived from one immutable architecture.
"""
import logging
import threading
from typing import Any, Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class GeometryCache:
    """
    A thread-safe cache of derived results (connectivity graphs, block geometry,
    device grids) keyed by the tuples built in `keys.py`.

    The cache is owned by one `ArchitectureQuery` and lives as long as it does, so
    its entries can never outlive the architecture they were computed from. Stored
    values are immutable and are handed out as-is.
    """

    def __init__(self):
        self._entries: Dict[Tuple, Any] = {}
        self._lock = threading.Lock()
        self.clear_stats()
        logger.debug("GeometryCache instance created.")

    def get(self, key: Tuple) -> Any:
        """Retrieves an item, or None on a miss."""
        with self._lock:
            if key in self._entries:
                self._stats[key[0]]['hits'] += 1
                logger.debug(f"Cache HIT for key: {str(key)[:150]}...")
                return self._entries[key]
            self._stats[key[0]]['misses'] += 1
        logger.debug(f"Cache MISS for key: {str(key)[:150]}...")
        return None

    def put(self, key: Tuple, value: Any):
        with self._lock:
            if key in self._entries:
                logger.warning(f"Cache key collision detected for namespace '{key[0]}'. Overwriting existing value.")
            self._entries[key] = value

    def get_or_compute(self, key: Tuple, compute: Callable[[], Any]) -> Any:
        """
        Returns the cached value for `key`, computing and storing it on a miss.
        Computation runs outside the lock; when two callers race on one key the
        first stored value wins and both receive it.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = compute()
        with self._lock:
            return self._entries.setdefault(key, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Tuple) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        """Returns a copy of the hit/miss statistics per key namespace."""
        with self._lock:
            return {namespace: counts.copy() for namespace, counts in self._stats.items()}

    def clear_stats(self):
        self._stats = _StatsTable()

    def clear(self):
        with self._lock:
            self._entries.clear()
        logger.info("Cleared the geometry cache.")


class _StatsTable(dict):
    def __missing__(self, namespace: str) -> Dict[str, int]:
        counts = {'hits': 0, 'misses': 0}
        self[namespace] = counts
        return counts
