"""Plist-backed tables."""

from .index_cache import IndexCache, IndexCacheMetrics
from .plist_table import PlistTable

__all__ = ["IndexCache", "IndexCacheMetrics", "PlistTable"]
