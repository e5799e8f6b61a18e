"""Type resolution and conflict handling for Arrow export.

The same plist key can hold differently typed values in different rows.
This module decides which Arrow type a column gets when that happens.
"""

from typing import Dict, Tuple, Optional
from enum import Enum
import pyarrow as pa
import structlog

from ..exceptions import SchemaConflictError

logger = structlog.get_logger(__name__)


class TypeResolutionStrategy(Enum):
    """Strategy for resolving type conflicts."""

    WIDEN = "widen"  # Always widen to the broader type
    STRICT = "strict"  # Fail on type conflicts
    FALLBACK = "fallback"  # Fall back to string on conflicts


class TypeCompatibilityMatrix:
    """
    Matrix defining type compatibility and resolution rules.

    This class provides a structured way to determine if two types
    are compatible and what the resulting merged type should be.
    """

    def __init__(self):
        """Initialize the type compatibility matrix."""
        # Numeric type hierarchy (ordered from narrow to wide)
        self.numeric_hierarchy = [
            pa.int32(),
            pa.int64(),
            pa.float64(),
        ]

        self.compatibility_rules: Dict[Tuple[str, str], pa.DataType] = {}
        self._build_compatibility_rules()

    def _build_compatibility_rules(self):
        """Build the compatibility rules matrix."""
        for i, type1 in enumerate(self.numeric_hierarchy):
            for j, type2 in enumerate(self.numeric_hierarchy):
                wider_type = self.numeric_hierarchy[max(i, j)]
                self.compatibility_rules[(str(type1), str(type2))] = wider_type

        # No signed or unsigned integer type holds both int64 and uint64 values
        for signed in (pa.int32(), pa.int64(), pa.float64()):
            self.compatibility_rules[(str(signed), "uint64")] = pa.float64()

        self.compatibility_rules[("string", "string")] = pa.string()
        self.compatibility_rules[("binary", "binary")] = pa.binary()
        self.compatibility_rules[("bool", "bool")] = pa.bool_()
        self.compatibility_rules[("timestamp[us]", "timestamp[us]")] = pa.timestamp("us")

        logger.debug(
            "type_compatibility_matrix_initialized",
            rules_count=len(self.compatibility_rules)
        )

    def get_merged_type(self, type1: pa.DataType, type2: pa.DataType) -> Optional[pa.DataType]:
        """
        Get the merged type for two compatible types.

        Returns:
            Merged type, or None if no rule covers the pair
        """
        if type1 == type2:
            return type1

        key = (str(type1), str(type2))
        if key in self.compatibility_rules:
            return self.compatibility_rules[key]

        reverse_key = (str(type2), str(type1))
        if reverse_key in self.compatibility_rules:
            return self.compatibility_rules[reverse_key]

        return None


class TypeResolver:
    """
    Resolves Arrow type conflicts between values of one column.

    Keeps counters of how conflicts were resolved so callers can report
    columns that needed widening or a string fallback.
    """

    def __init__(self, strategy: TypeResolutionStrategy = TypeResolutionStrategy.WIDEN):
        """
        Initialize the type resolver.

        Args:
            strategy: Default resolution strategy
        """
        self.strategy = strategy
        self.compatibility_matrix = TypeCompatibilityMatrix()
        self.resolution_count = 0
        self.widening_count = 0
        self.fallback_count = 0
        self.strict_failures = 0

    def merge_types(
        self,
        type1: pa.DataType,
        type2: pa.DataType,
        strategy: Optional[TypeResolutionStrategy] = None
    ) -> pa.DataType:
        """
        Merge two Arrow types using the specified resolution strategy.

        Args:
            type1: First Arrow type
            type2: Second Arrow type
            strategy: Resolution strategy (uses default if not specified)

        Returns:
            The merged Arrow type

        Raises:
            SchemaConflictError: If types are incompatible in STRICT mode
        """
        self.resolution_count += 1
        strategy = strategy or self.strategy

        if type1 == type2:
            return type1

        # Null types → use the non-null type
        if pa.types.is_null(type1):
            return type2
        if pa.types.is_null(type2):
            return type1

        # Integer width is an inference artefact, not a conflict
        if pa.types.is_integer(type1) and pa.types.is_integer(type2):
            return self.compatibility_matrix.get_merged_type(type1, type2) or pa.int64()

        # Nested pairs merge element-wise so empty lists and missing fields keep their types
        if strategy == TypeResolutionStrategy.FALLBACK and not self._is_nested_pair(type1, type2):
            self.fallback_count += 1
            logger.info(
                "type_resolution_fallback",
                type1=str(type1),
                type2=str(type2),
                result="string"
            )
            return pa.string()

        result = self._resolve_with_widening(type1, type2, strategy)
        if result is not None:
            self.widening_count += 1
            logger.debug(
                "type_resolution_widened",
                type1=str(type1),
                type2=str(type2),
                result=str(result)
            )
            return result

        if strategy == TypeResolutionStrategy.STRICT:
            self.strict_failures += 1
            logger.error(
                "type_resolution_strict_failure",
                type1=str(type1),
                type2=str(type2)
            )
            raise SchemaConflictError(
                f"STRICT mode: Incompatible types {type1} and {type2}"
            )

        self.fallback_count += 1
        logger.warning(
            "type_resolution_fallback_to_string",
            type1=str(type1),
            type2=str(type2)
        )
        return pa.string()

    @staticmethod
    def _is_nested_pair(type1: pa.DataType, type2: pa.DataType) -> bool:
        return (
            (pa.types.is_list(type1) and pa.types.is_list(type2))
            or (pa.types.is_struct(type1) and pa.types.is_struct(type2))
        )

    def _resolve_with_widening(
        self,
        type1: pa.DataType,
        type2: pa.DataType,
        strategy: TypeResolutionStrategy
    ) -> Optional[pa.DataType]:
        """
        Resolve type conflict using widening rules.

        Returns:
            Merged type, or None if widening not possible
        """
        merged = self.compatibility_matrix.get_merged_type(type1, type2)
        if merged is not None:
            return merged

        # List types → merge element types
        if pa.types.is_list(type1) and pa.types.is_list(type2):
            return pa.list_(self.merge_types(type1.value_type, type2.value_type, strategy))

        # Struct types → merge fields
        if pa.types.is_struct(type1) and pa.types.is_struct(type2):
            return self._merge_struct_types(type1, type2, strategy)

        return None

    def _merge_struct_types(
        self,
        type1: pa.DataType,
        type2: pa.DataType,
        strategy: TypeResolutionStrategy
    ) -> pa.DataType:
        """Merge two struct types field by field."""
        all_fields = {}

        for field in type1:
            all_fields[field.name] = field.type

        for field in type2:
            if field.name in all_fields:
                all_fields[field.name] = self.merge_types(
                    all_fields[field.name],
                    field.type,
                    strategy
                )
            else:
                all_fields[field.name] = field.type

        return pa.struct([
            pa.field(name, dtype)
            for name, dtype in all_fields.items()
        ])

    def get_statistics(self) -> Dict[str, int]:
        """
        Get type resolution statistics.

        Returns:
            Dictionary with resolution metrics
        """
        return {
            "resolution_count": self.resolution_count,
            "widening_count": self.widening_count,
            "fallback_count": self.fallback_count,
            "strict_failures": self.strict_failures
        }

    def reset_statistics(self):
        """Reset all statistics counters to zero."""
        self.resolution_count = 0
        self.widening_count = 0
        self.fallback_count = 0
        self.strict_failures = 0
