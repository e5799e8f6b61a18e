"""Unit tests for row to record mapping."""

from dataclasses import dataclass
from typing import Optional

import pytest
from pydantic import BaseModel

from plist_table.exceptions import RecordMappingError
from plist_table.transformers import MappingStrategy, RecordMapper


@dataclass
class Product:
    sku: str
    price: float
    note: Optional[str] = None


class Supplier(BaseModel):
    id: int
    name: str


class LegacyRecord:
    """Plain class populated attribute by attribute."""

    def __init__(self):
        self.sku = None


class DeclaredRecord:
    sku: str
    price: float


class NeedsArguments:
    def __init__(self, sku):
        self.sku = sku


class TestStrategySelection:
    """Test the mapping strategy follows the record class."""

    @pytest.mark.parametrize("record_class,strategy", [
        (dict, MappingStrategy.DICT),
        (Supplier, MappingStrategy.PYDANTIC),
        (Product, MappingStrategy.DATACLASS),
        (LegacyRecord, MappingStrategy.ATTRIBUTES),
    ])
    def test_strategy(self, record_class, strategy):
        """Test each kind of class gets its strategy."""
        assert RecordMapper(record_class).strategy is strategy


class TestMapping:
    """Test map_row."""

    def test_dataclass(self):
        """Test dataclasses are built from their fields only."""
        record = RecordMapper(Product).map_row({"sku": "A1", "price": 9.5, "colour": "red"})

        assert record == Product(sku="A1", price=9.5)

    def test_pydantic(self):
        """Test pydantic models validate and coerce."""
        record = RecordMapper(Supplier).map_row({"id": "7", "name": "Acme"})

        assert record == Supplier(id=7, name="Acme")

    def test_plain_class_sets_every_key(self):
        """Test classes without declarations accept every key."""
        record = RecordMapper(LegacyRecord).map_row({"sku": "A1", "extra": 3})

        assert record.sku == "A1"
        assert record.extra == 3

    def test_plain_class_with_annotations(self):
        """Test annotated classes only receive declared keys."""
        record = RecordMapper(DeclaredRecord).map_row({"sku": "A1", "price": 2.0, "extra": 3})

        assert record.sku == "A1"
        assert record.price == 2.0
        assert not hasattr(record, "extra")

    def test_dict_copy(self):
        """Test dict records are copies."""
        row = {"sku": "A1"}
        record = RecordMapper(dict).map_row(row)

        assert record == row
        assert record is not row

    def test_unknown_keys_remembered(self):
        """Test ignored keys are tracked for diagnostics."""
        mapper = RecordMapper(Product)
        mapper.map_row({"sku": "A1", "price": 1.0, "colour": "red"})
        mapper.map_row({"sku": "A2", "price": 1.0, "size": "L"})

        assert mapper.unknown_keys == {"colour", "size"}


class TestMappingErrors:
    """Test mapping failures."""

    def test_strict_rejects_unknown_keys(self):
        """Test strict mode fails on undeclared keys."""
        mapper = RecordMapper(Product, strict=True, table="products")

        with pytest.raises(RecordMappingError) as exc_info:
            mapper.map_row({"sku": "A1", "price": 1.0, "colour": "red"}, row_number=4)

        assert exc_info.value.table == "products"
        assert "colour" in str(exc_info.value)

    def test_validation_error(self):
        """Test pydantic validation failures are wrapped."""
        with pytest.raises(RecordMappingError):
            RecordMapper(Supplier).map_row({"id": "seven", "name": "Acme"})

    def test_missing_dataclass_field(self):
        """Test missing required fields are wrapped."""
        with pytest.raises(RecordMappingError):
            RecordMapper(Product).map_row({"sku": "A1"})

    def test_class_needing_arguments(self):
        """Test classes that cannot be built without arguments are wrapped."""
        with pytest.raises(RecordMappingError):
            RecordMapper(NeedsArguments).map_row({"sku": "A1"})
