"""Shared Pydantic models for plist tables."""

from .definitions import (
    IndexDefinition,
    RelationshipDefinition,
    SortDescriptor,
)

__all__ = [
    "IndexDefinition",
    "RelationshipDefinition",
    "SortDescriptor",
]
