"""Pydantic models describing table indexes and relationships."""

from typing import TYPE_CHECKING, Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ..table.plist_table import PlistTable


class SortDescriptor(BaseModel):
    """One key of a sort order."""

    key: str = Field(..., description="Dotted key path to sort by")
    ascending: bool = Field(True, description="Sort direction")
    case_insensitive: bool = Field(False, description="Fold case when comparing strings")

    model_config = ConfigDict(frozen=True)

    def __init__(self, key: str, ascending: bool = True, case_insensitive: bool = False, **data: Any) -> None:
        super().__init__(key=key, ascending=ascending, case_insensitive=case_insensitive, **data)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate key path has no empty segments."""
        if not v or any(not part for part in v.split(".")):
            raise ValueError(f"invalid key path: {v!r}")
        return v

    @classmethod
    def parse(cls, text: str) -> "SortDescriptor":
        """Build a descriptor from ``key``, ``key:asc``, ``key:desc`` or ``key:desc:i``.

        The optional trailing ``i`` flag makes the comparison case-insensitive.
        """
        parts = text.split(":")
        key = parts[0]
        ascending = True
        case_insensitive = False
        for flag in parts[1:]:
            flag = flag.strip().lower()
            if flag in ("asc", "ascending"):
                ascending = True
            elif flag in ("desc", "descending"):
                ascending = False
            elif flag in ("i", "ci"):
                case_insensitive = True
            else:
                raise ValueError(f"unknown sort flag {flag!r} in {text!r}")
        return cls(key=key, ascending=ascending, case_insensitive=case_insensitive)


class IndexDefinition(BaseModel):
    """A named ordering of a table's records."""

    name: str = Field(..., min_length=1, description="Index name")
    descriptors: List[SortDescriptor] = Field(..., description="Sort keys, most significant first")

    model_config = ConfigDict(frozen=True)

    @field_validator("descriptors")
    @classmethod
    def validate_descriptors(cls, v: List[SortDescriptor]) -> List[SortDescriptor]:
        """Validate at least one sort key is given."""
        if not v:
            raise ValueError("an index needs at least one sort descriptor")
        return v


class RelationshipDefinition(BaseModel):
    """A named master/detail link to another table.

    Detail records ``d`` relate to master record ``m`` when
    ``d.<to_key> == m.<from_key>``.
    """

    name: str = Field(..., min_length=1, description="Relationship name")
    detail_table: Any = Field(..., description="Table holding the detail records")
    from_key: str = Field(..., min_length=1, description="Key path on the master record")
    to_key: str = Field(..., min_length=1, description="Key path on the detail records")

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def table(self) -> "PlistTable":
        return self.detail_table
