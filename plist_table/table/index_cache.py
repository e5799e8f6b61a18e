"""Caching of materialised index orderings.

An index ordering is computed the first time a query uses the index and
kept until the table reloads or the index is redefined.
"""

from typing import Any, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class IndexCacheMetrics:
    """Metrics for index cache operations."""

    def __init__(self):
        """Initialize metrics."""
        self.hits = 0
        self.misses = 0
        self.builds = 0
        self.invalidations = 0

    def reset(self):
        """Reset all metrics."""
        self.hits = 0
        self.misses = 0
        self.builds = 0
        self.invalidations = 0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "builds": self.builds,
            "invalidations": self.invalidations,
            "hit_rate": self.hits / lookups if lookups > 0 else 0.0
        }


class IndexCache:
    """Per-table cache of sorted record lists keyed by index name."""

    def __init__(self, table_name: str = "unknown"):
        self._orderings: Dict[str, List[Any]] = {}
        self.table_name = table_name
        self.metrics = IndexCacheMetrics()

    def get(self, index_name: str) -> Optional[List[Any]]:
        """
        Get a cached ordering.

        Args:
            index_name: Index name

        Returns:
            Cached ordering, or None if not built yet
        """
        ordering = self._orderings.get(index_name)
        if ordering is None:
            self.metrics.misses += 1
            logger.debug("index_cache_miss", table=self.table_name, index=index_name)
            return None

        self.metrics.hits += 1
        return ordering

    def get_or_build(self, index_name: str, build: Callable[[], List[Any]]) -> List[Any]:
        """
        Return the cached ordering, building and caching it on a miss.

        Args:
            index_name: Index name
            build: Zero-argument function producing the ordering

        Returns:
            The ordering (shared; callers must copy before mutating)
        """
        ordering = self.get(index_name)
        if ordering is None:
            ordering = build()
            self.set(index_name, ordering)
        return ordering

    def set(self, index_name: str, ordering: List[Any]) -> None:
        """Cache an ordering."""
        self._orderings[index_name] = ordering
        self.metrics.builds += 1
        logger.debug(
            "index_built",
            table=self.table_name,
            index=index_name,
            records=len(ordering)
        )

    def invalidate(self, index_name: str) -> None:
        """Drop one cached ordering."""
        if index_name in self._orderings:
            del self._orderings[index_name]
            self.metrics.invalidations += 1
            logger.debug("index_cache_invalidated", table=self.table_name, index=index_name)

    def clear(self):
        """Drop every cached ordering."""
        count = len(self._orderings)
        self._orderings.clear()
        if count:
            logger.debug("index_cache_cleared", table=self.table_name, entries_removed=count)

    def cached_indexes(self) -> List[str]:
        """Names of indexes with a cached ordering."""
        return list(self._orderings.keys())

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache metrics and state
        """
        return {
            "metrics": self.metrics.to_dict(),
            "cache_size": len(self._orderings),
            "cached_indexes": self.cached_indexes(),
        }
