"""Row transformers: records and Arrow export."""

from .plist_to_arrow import PlistToArrowConverter
from .record_mapper import MappingStrategy, RecordMapper
from .type_resolver import TypeResolutionStrategy, TypeResolver

__all__ = [
    "MappingStrategy",
    "PlistToArrowConverter",
    "RecordMapper",
    "TypeResolutionStrategy",
    "TypeResolver",
]
