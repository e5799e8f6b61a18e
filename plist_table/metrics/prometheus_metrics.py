"""Prometheus metrics definitions and helpers.

Provides the metric definitions shared by every plist table in a process.
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    REGISTRY,
    CollectorRegistry,
)


class TableMetrics:
    """Plist table metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize table metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # Loads
        self.loads = Counter(
            "plist_table_loads_total",
            "Total number of plist table loads",
            ["table", "status"],
            registry=registry,
        )

        # Rows currently held
        self.rows_loaded = Gauge(
            "plist_table_rows_loaded",
            "Number of rows held by a loaded plist table",
            ["table"],
            registry=registry,
        )

        # Queries
        self.queries = Counter(
            "plist_table_queries_total",
            "Total number of plist table queries",
            ["table", "operation"],
            registry=registry,
        )

        # Query duration
        self.query_duration = Histogram(
            "plist_table_query_duration_seconds",
            "Time spent answering plist table queries",
            ["table", "operation"],
            buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
            registry=registry,
        )

        # Index cache
        self.index_cache = Counter(
            "plist_table_index_cache_total",
            "Index cache lookups by result (hit, miss, build)",
            ["table", "result"],
            registry=registry,
        )


_metrics_instance: Optional[TableMetrics] = None


def get_table_metrics() -> TableMetrics:
    """Get or create the process-wide metrics instance.

    Returns:
        TableMetrics bound to the default registry
    """
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = TableMetrics()
    return _metrics_instance

