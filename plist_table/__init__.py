"""Read-only lookup tables backed by property list files."""

from .config import PlistTableSettings, get_settings
from .exceptions import (
    DuplicatePrimaryKeyError,
    IndexNotFoundError,
    MissingPrimaryKeyError,
    PlistFormatError,
    PlistTableError,
    PredicateSyntaxError,
    RecordMappingError,
    RelationshipNotFoundError,
    ResourceNotFoundError,
    SchemaConflictError,
)
from .models import IndexDefinition, RelationshipDefinition, SortDescriptor
from .query import Predicate
from .table import PlistTable
from .transformers import TypeResolutionStrategy

__version__ = "0.1.0"

__all__ = [
    "DuplicatePrimaryKeyError",
    "IndexDefinition",
    "IndexNotFoundError",
    "MissingPrimaryKeyError",
    "PlistFormatError",
    "PlistTable",
    "PlistTableError",
    "PlistTableSettings",
    "Predicate",
    "PredicateSyntaxError",
    "RecordMappingError",
    "RelationshipDefinition",
    "RelationshipNotFoundError",
    "ResourceNotFoundError",
    "SchemaConflictError",
    "SortDescriptor",
    "TypeResolutionStrategy",
    "get_settings",
]
