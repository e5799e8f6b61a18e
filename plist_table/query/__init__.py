"""Predicates, key paths and sorting."""

from .predicate import Predicate
from .sorting import compare_values, sort_records, value_for_key_path

__all__ = ["Predicate", "compare_values", "sort_records", "value_for_key_path"]
