"""Exception hierarchy for plist tables.

Every error raised by the library derives from PlistTableError. Errors
that have an obvious builtin counterpart also inherit from it so callers
can catch ``KeyError``/``ValueError``/``FileNotFoundError`` as usual.
"""

from typing import Any, Optional, Sequence


class PlistTableError(Exception):
    """Base class for all plist table errors."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.table = table

    def __str__(self) -> str:
        if self.table:
            return f"[{self.table}] {self.message}"
        return self.message


class ResourceNotFoundError(PlistTableError, FileNotFoundError):
    """No plist file could be found for a resource name."""

    def __init__(self, resource_name: str, searched: Sequence[str] = ()) -> None:
        locations = ", ".join(searched) if searched else "<no search paths>"
        super().__init__(
            f"plist resource '{resource_name}' not found (searched: {locations})",
            table=resource_name,
        )
        self.resource_name = resource_name
        self.searched = list(searched)


class PlistFormatError(PlistTableError, ValueError):
    """The plist could not be parsed or does not describe a table."""


class MissingPrimaryKeyError(PlistTableError):
    """A row lacks the primary key property."""

    def __init__(self, primary_key: str, row_number: int, table: Optional[str] = None) -> None:
        super().__init__(
            f"row {row_number} has no value for primary key '{primary_key}'",
            table=table,
        )
        self.primary_key = primary_key
        self.row_number = row_number


class DuplicatePrimaryKeyError(PlistTableError):
    """Two rows share the same primary key value."""

    def __init__(self, primary_key: str, value: Any, table: Optional[str] = None) -> None:
        super().__init__(
            f"duplicate value {value!r} for primary key '{primary_key}'",
            table=table,
        )
        self.primary_key = primary_key
        self.value = value


class RecordMappingError(PlistTableError):
    """A row could not be turned into an instance of the record class."""


class IndexNotFoundError(PlistTableError, KeyError):
    """Query referenced an index that was never added."""

    def __init__(self, index_name: str, table: Optional[str] = None) -> None:
        super().__init__(f"no index named '{index_name}'", table=table)
        self.index_name = index_name


class RelationshipNotFoundError(PlistTableError, KeyError):
    """Query referenced a relationship that was never added."""

    def __init__(self, relationship_name: str, table: Optional[str] = None) -> None:
        super().__init__(f"no relationship named '{relationship_name}'", table=table)
        self.relationship_name = relationship_name


class PredicateSyntaxError(PlistTableError, ValueError):
    """A predicate format string could not be parsed."""

    def __init__(self, message: str, format_string: str = "", position: Optional[int] = None) -> None:
        if position is not None:
            message = f"{message} at position {position} in {format_string!r}"
        super().__init__(message)
        self.format_string = format_string
        self.position = position


class SchemaConflictError(PlistTableError):
    """Two values for the same column have irreconcilable Arrow types."""
