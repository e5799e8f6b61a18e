"""Unit tests for key paths, value comparison and multi-key sorting."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from plist_table.models import SortDescriptor
from plist_table.query import compare_values, sort_records, value_for_key_path


class TestKeyPaths:
    """Test value_for_key_path."""

    def test_mapping_and_attribute_segments(self):
        """Test paths cross between mappings and attributes."""
        record = SimpleNamespace(owner={"address": SimpleNamespace(city="Oslo")})

        assert value_for_key_path(record, "owner.address.city") == "Oslo"

    def test_missing_segments(self):
        """Test missing segments resolve to None."""
        row = {"a": {"b": None}}

        assert value_for_key_path(row, "a.b.c") is None
        assert value_for_key_path(row, "x") is None
        assert value_for_key_path(SimpleNamespace(), "x.y") is None


class TestCompareValues:
    """Test compare_values."""

    def test_none_sorts_first(self):
        """Test None is smaller than everything."""
        assert compare_values(None, 0) < 0
        assert compare_values("", None) > 0
        assert compare_values(None, None) == 0

    def test_case_insensitive(self):
        """Test case folding for strings."""
        assert compare_values("Apple", "banana") < 0
        assert compare_values("Apple", "apple") != 0
        assert compare_values("Apple", "apple", case_insensitive=True) == 0

    def test_incomparable_types_do_not_raise(self):
        """Test mixed types order by type name."""
        assert compare_values(1, "a") < 0  # "int" < "str"
        assert compare_values(datetime(2024, 1, 1), 5) < 0  # "datetime" < "int"


class TestSortRecords:
    """Test sort_records."""

    @pytest.fixture
    def rows(self):
        return [
            {"id": 1, "team": "b", "score": 10},
            {"id": 2, "team": "a", "score": None},
            {"id": 3, "team": "b", "score": 30},
            {"id": 4, "team": "a", "score": 20},
            {"id": 5, "team": "B", "score": 10},
        ]

    def ids(self, rows):
        return [row["id"] for row in rows]

    def test_single_key(self, rows):
        """Test ascending sort puts None first."""
        result = sort_records(rows, [SortDescriptor(key="score")])

        assert self.ids(result) == [2, 1, 5, 4, 3]

    def test_descending_puts_none_last(self, rows):
        """Test descending sort reverses None placement."""
        result = sort_records(rows, [SortDescriptor(key="score", ascending=False)])

        assert self.ids(result) == [3, 4, 1, 5, 2]

    def test_tie_breaking(self, rows):
        """Test later descriptors break ties of earlier ones."""
        result = sort_records(rows, [
            SortDescriptor(key="team", case_insensitive=True),
            SortDescriptor(key="score", ascending=False),
        ])

        assert self.ids(result) == [4, 2, 3, 1, 5]

    def test_stable(self, rows):
        """Test equal records keep their original order."""
        result = sort_records(rows, [SortDescriptor(key="team", case_insensitive=True)])

        assert self.ids(result) == [2, 4, 1, 3, 5]

    def test_input_untouched(self, rows):
        """Test a new list is returned."""
        original = list(rows)
        sort_records(rows, [SortDescriptor(key="id", ascending=False)])

        assert rows == original


class TestSortDescriptor:
    """Test SortDescriptor validation and parsing."""

    def test_parse(self):
        """Test the compact CLI form."""
        assert SortDescriptor.parse("name") == SortDescriptor(key="name")
        assert SortDescriptor.parse("name:desc") == SortDescriptor(key="name", ascending=False)
        assert SortDescriptor.parse("name:asc:i") == SortDescriptor(key="name", case_insensitive=True)

    def test_positional_arguments(self):
        """Test key, direction and case folding can be passed positionally."""
        descriptor = SortDescriptor("name", False, True)

        assert descriptor == SortDescriptor(key="name", ascending=False, case_insensitive=True)
        assert SortDescriptor("name").ascending is True

    def test_parse_unknown_flag(self):
        """Test unknown flags are rejected."""
        with pytest.raises(ValueError):
            SortDescriptor.parse("name:sideways")

    def test_invalid_key_path(self):
        """Test empty key path segments are rejected."""
        with pytest.raises(ValueError):
            SortDescriptor(key="a..b")

    def test_frozen(self):
        """Test descriptors are immutable."""
        descriptor = SortDescriptor(key="name")

        with pytest.raises(Exception):
            descriptor.key = "other"
