"""Plist value to Arrow conversion.

Infers an Arrow schema from plist rows and builds a ``pyarrow.Table``
holding them. Columns appear in first-seen order across rows.
"""

import base64
import plistlib
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pyarrow as pa
import structlog

from .type_resolver import TypeResolutionStrategy, TypeResolver

logger = structlog.get_logger(__name__)

_INT32_MIN, _INT32_MAX = -2147483648, 2147483647
_INT64_MAX = 2 ** 63 - 1


class PlistToArrowConverter:
    """Converts plist rows to Arrow tables."""

    def __init__(self, strategy: TypeResolutionStrategy = TypeResolutionStrategy.WIDEN):
        """
        Initialize the converter.

        Args:
            strategy: How conflicting column types are resolved
        """
        self.resolver = TypeResolver(strategy=strategy)

    def infer_type(self, value: Any) -> pa.DataType:
        """
        Infer the Arrow type of one plist value.

        Args:
            value: Value read from a plist

        Returns:
            Arrow DataType
        """
        if value is None:
            return pa.null()

        if isinstance(value, bool):
            return pa.bool_()

        if isinstance(value, plistlib.UID):
            return pa.uint64() if value.data > _INT64_MAX else pa.int64()

        if isinstance(value, int):
            if _INT32_MIN <= value <= _INT32_MAX:
                return pa.int32()
            # Binary plists store unsigned 64-bit integers
            if value > _INT64_MAX:
                return pa.uint64()
            return pa.int64()

        if isinstance(value, float):
            return pa.float64()

        if isinstance(value, str):
            return pa.string()

        if isinstance(value, (bytes, bytearray)):
            return pa.binary()

        if isinstance(value, datetime):
            return pa.timestamp("us")

        if isinstance(value, list):
            element_type = pa.null()
            for item in value:
                element_type = self.resolver.merge_types(element_type, self.infer_type(item))
            return pa.list_(element_type)

        if isinstance(value, dict):
            return pa.struct([
                pa.field(str(key), self.infer_type(val))
                for key, val in value.items()
            ])

        logger.warning(
            "unknown_type_defaulting_to_string",
            type=type(value).__name__
        )
        return pa.string()

    def infer_schema(self, rows: Sequence[Dict[str, Any]]) -> pa.Schema:
        """
        Infer a schema covering every key of every row.

        Args:
            rows: Plist rows

        Returns:
            Arrow schema, columns in first-seen order
        """
        columns: Dict[str, pa.DataType] = {}
        for row in rows:
            for key, value in row.items():
                value_type = self.infer_type(value)
                if key in columns:
                    columns[key] = self.resolver.merge_types(columns[key], value_type)
                else:
                    columns[key] = value_type

        # int32 is only an inference step; expose integers as int64
        return pa.schema([
            pa.field(name, self._finalise(dtype)) for name, dtype in columns.items()
        ])

    def _finalise(self, dtype: pa.DataType) -> pa.DataType:
        if pa.types.is_int32(dtype):
            return pa.int64()
        if pa.types.is_list(dtype):
            return pa.list_(self._finalise(dtype.value_type))
        if pa.types.is_struct(dtype):
            return pa.struct([pa.field(f.name, self._finalise(f.type)) for f in dtype])
        return dtype

    def coerce_value(self, value: Any, dtype: pa.DataType) -> Any:
        """
        Coerce a plist value so Arrow accepts it for the given type.

        Values in string-fallback columns are stringified; bytes become
        base64 text there.
        """
        if value is None:
            return None

        if isinstance(value, plistlib.UID):
            value = value.data

        if pa.types.is_string(dtype):
            if isinstance(value, str):
                return value
            if isinstance(value, (bytes, bytearray)):
                return base64.b64encode(bytes(value)).decode("utf-8")
            if isinstance(value, datetime):
                return value.isoformat()
            return str(value)

        if pa.types.is_floating(dtype) and isinstance(value, int) and not isinstance(value, bool):
            return float(value)

        if pa.types.is_list(dtype) and isinstance(value, list):
            return [self.coerce_value(item, dtype.value_type) for item in value]

        if pa.types.is_struct(dtype) and isinstance(value, dict):
            return {
                field.name: self.coerce_value(value.get(field.name), field.type)
                for field in dtype
            }

        return value

    def to_table(self, rows: Sequence[Dict[str, Any]], schema: Optional[pa.Schema] = None) -> pa.Table:
        """
        Build an Arrow table from plist rows.

        Args:
            rows: Plist rows
            schema: Explicit schema; inferred when omitted

        Returns:
            Arrow table with one row per plist row
        """
        if schema is None:
            schema = self.infer_schema(rows)

        columns: List[pa.Array] = []
        for field in schema:
            values = [self.coerce_value(row.get(field.name), field.type) for row in rows]
            columns.append(pa.array(values, type=field.type))

        table = pa.Table.from_arrays(columns, schema=schema) if columns else schema.empty_table()
        logger.debug(
            "arrow_table_built",
            rows=table.num_rows,
            columns=table.num_columns,
            **self.resolver.get_statistics()
        )
        return table
