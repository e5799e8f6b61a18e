"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    TableMetrics,
    get_table_metrics,
)

__all__ = [
    "TableMetrics",
    "get_table_metrics",
]
