"""Plist row to record conversion.

Rows are plain dictionaries read from the plist. The mapper turns each one
into an instance of the table's record class, choosing the construction
strategy from the kind of class it was given.
"""

import dataclasses
from enum import Enum
from typing import Any, Dict, Set, Type

import structlog
from pydantic import BaseModel, ValidationError

from ..exceptions import RecordMappingError

logger = structlog.get_logger(__name__)


class MappingStrategy(Enum):
    """How records are built from rows."""

    DICT = "dict"  # Shallow copy of the row
    PYDANTIC = "pydantic"  # model_validate
    DATACLASS = "dataclass"  # Keyword construction
    ATTRIBUTES = "attributes"  # No-arg construction then setattr


def _strategy_for(record_class: Type[Any]) -> MappingStrategy:
    if record_class is dict:
        return MappingStrategy.DICT
    if isinstance(record_class, type) and issubclass(record_class, BaseModel):
        return MappingStrategy.PYDANTIC
    if dataclasses.is_dataclass(record_class):
        return MappingStrategy.DATACLASS
    return MappingStrategy.ATTRIBUTES


class RecordMapper:
    """Builds record objects from plist rows."""

    def __init__(self, record_class: Type[Any], strict: bool = False, table: str = "unknown"):
        """
        Initialize the mapper.

        Args:
            record_class: Class every row becomes an instance of
            strict: Fail on row keys the record class does not declare
            table: Table name for logging
        """
        self.record_class = record_class
        self.strict = strict
        self.table = table
        self.strategy = _strategy_for(record_class)
        self.unknown_keys: Set[str] = set()

        logger.debug(
            "record_mapper_initialized",
            table=table,
            record_class=getattr(record_class, "__name__", repr(record_class)),
            strategy=self.strategy.value,
            strict=strict,
        )

    def declared_fields(self) -> Set[str]:
        """Names the record class declares, or an empty set if it declares none."""
        if self.strategy is MappingStrategy.PYDANTIC:
            return set(self.record_class.model_fields)
        if self.strategy is MappingStrategy.DATACLASS:
            return {f.name for f in dataclasses.fields(self.record_class) if f.init}
        if self.strategy is MappingStrategy.ATTRIBUTES:
            annotations: Dict[str, Any] = {}
            for klass in reversed(self.record_class.__mro__):
                annotations.update(getattr(klass, "__annotations__", {}))
            slots = getattr(self.record_class, "__slots__", ())
            if isinstance(slots, str):
                slots = (slots,)
            return set(annotations) | set(slots)
        return set()

    def map_row(self, row: Dict[str, Any], row_number: int = 0) -> Any:
        """
        Convert one row into a record.

        Args:
            row: Row dictionary
            row_number: Position of the row, for error messages

        Returns:
            Record instance

        Raises:
            RecordMappingError: If the row cannot be mapped
        """
        if self.strategy is MappingStrategy.DICT:
            return dict(row)

        declared = self.declared_fields()
        unknown = set(row) - declared if declared else set()
        if unknown:
            self._handle_unknown(unknown, row_number)

        try:
            if self.strategy is MappingStrategy.PYDANTIC:
                return self.record_class.model_validate(row)

            if self.strategy is MappingStrategy.DATACLASS:
                kwargs = {key: value for key, value in row.items() if key in declared}
                return self.record_class(**kwargs)

            record = self.record_class()
            for key, value in row.items():
                if declared and key not in declared:
                    continue
                setattr(record, key, value)
            return record

        except ValidationError as e:
            logger.error(
                "record_validation_failed",
                table=self.table,
                row_number=row_number,
                errors=e.errors(include_url=False),
            )
            raise RecordMappingError(
                f"row {row_number} does not validate as {self.record_class.__name__}: {e}",
                table=self.table,
            ) from e
        except (TypeError, AttributeError) as e:
            logger.error(
                "record_construction_failed",
                table=self.table,
                row_number=row_number,
                error=str(e),
            )
            raise RecordMappingError(
                f"cannot build {self.record_class.__name__} from row {row_number}: {e}",
                table=self.table,
            ) from e

    def _handle_unknown(self, unknown: Set[str], row_number: int) -> None:
        if self.strict:
            logger.error(
                "record_unknown_keys",
                table=self.table,
                row_number=row_number,
                keys=sorted(unknown),
            )
            raise RecordMappingError(
                f"row {row_number} has keys {sorted(unknown)} not declared by "
                f"{self.record_class.__name__}",
                table=self.table,
            )
        new_keys = unknown - self.unknown_keys
        if new_keys:
            self.unknown_keys |= new_keys
            logger.debug(
                "record_unknown_keys_ignored",
                table=self.table,
                row_number=row_number,
                keys=sorted(new_keys),
            )
