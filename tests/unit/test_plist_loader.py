"""Unit tests for plist resource resolution and parsing."""

import plistlib
from datetime import datetime

import pytest

from plist_table.exceptions import MissingPrimaryKeyError, PlistFormatError, ResourceNotFoundError
from plist_table.loader import normalise_rows, read_plist, resolve_resource, resource_filename


class TestResolveResource:
    """Test resolve_resource."""

    def test_resource_filename(self):
        """Test the extension is appended only when missing."""
        assert resource_filename("Country") == "Country.plist"
        assert resource_filename("Country.plist") == "Country.plist"
        assert resource_filename("Country", ".xml") == "Country.xml"

    def test_search_path_order(self, tmp_path, write_plist):
        """Test earlier search paths win."""
        first, second = tmp_path / "first", tmp_path / "second"
        write_plist("Country.plist", [{"code": "A"}], directory=first)
        write_plist("Country.plist", [{"code": "B"}], directory=second)

        resolved = resolve_resource("Country", search_paths=[second, first])

        assert resolved == second / "Country.plist"

    def test_skips_missing_directories(self, tmp_path, write_plist):
        """Test directories without the file are skipped."""
        data = tmp_path / "data"
        write_plist("Country.plist", [], directory=data)

        resolved = resolve_resource("Country", search_paths=[tmp_path / "nope", str(data)])

        assert resolved == data / "Country.plist"

    def test_package_resource(self, tmp_path, monkeypatch, write_plist):
        """Test resources shipped as package data are found first."""
        package_dir = tmp_path / "plist_fixture_pkg"
        package_dir.mkdir()
        (package_dir / "__init__.py").write_text("")
        write_plist("Country.plist", [{"code": "PKG"}], directory=package_dir)
        write_plist("Country.plist", [{"code": "DIR"}], directory=tmp_path / "dir")
        monkeypatch.syspath_prepend(str(tmp_path))

        resolved = resolve_resource(
            "Country", search_paths=[tmp_path / "dir"], package="plist_fixture_pkg"
        )

        assert read_plist(resolved) == [{"code": "PKG"}]

    def test_not_found_lists_locations(self, tmp_path):
        """Test the error names every searched location."""
        with pytest.raises(ResourceNotFoundError) as exc_info:
            resolve_resource("Missing", search_paths=[tmp_path])

        assert exc_info.value.searched == [str(tmp_path)]
        assert "Missing" in str(exc_info.value)


class TestReadPlist:
    """Test read_plist."""

    def test_xml_and_binary_bytes(self):
        """Test both formats parse from bytes."""
        root = [{"name": "x", "when": datetime(2024, 5, 1, 12, 0), "blob": b"\x00\x01"}]

        assert read_plist(plistlib.dumps(root, fmt=plistlib.FMT_XML)) == root
        assert read_plist(plistlib.dumps(root, fmt=plistlib.FMT_BINARY)) == root

    def test_path_as_string(self, write_plist):
        """Test plain string paths are accepted."""
        path = write_plist("rows.plist", [{"a": 1}])

        assert read_plist(str(path)) == [{"a": 1}]

    def test_missing_file(self, tmp_path):
        """Test missing paths raise ResourceNotFoundError."""
        with pytest.raises(ResourceNotFoundError):
            read_plist(tmp_path / "absent.plist")

    @pytest.mark.parametrize("content", [
        b"not a plist at all",
        b"<?xml version='1.0'?><plist><array><dict>",
        b"bplist00garbage",
        b"<?xml version='1.0'?><plist><array><date>garbage</date></array></plist>",
        b"<?xml version='1.0'?><plist><dict><key>n</key><integer>x</integer></dict></plist>",
    ])
    def test_malformed(self, content):
        """Test malformed content raises PlistFormatError."""
        with pytest.raises(PlistFormatError) as exc_info:
            read_plist(content)

        assert isinstance(exc_info.value, ValueError)


class TestNormaliseRows:
    """Test normalise_rows."""

    def test_array_root(self):
        """Test array roots keep order and copy rows."""
        root = [{"id": 2}, {"id": 1}]

        rows = normalise_rows(root, "id")

        assert rows == root
        assert rows[0] is not root[0]

    def test_dictionary_root(self):
        """Test keyed roots inject missing keys and keep explicit ones."""
        root = {"a": {"name": "A"}, "b": {"id": "explicit", "name": "B"}}

        rows = normalise_rows(root, "id")

        assert rows == [{"name": "A", "id": "a"}, {"id": "explicit", "name": "B"}]

    def test_invalid_root(self):
        """Test scalar roots are rejected."""
        with pytest.raises(PlistFormatError):
            normalise_rows("just a string", "id")

    def test_invalid_row(self):
        """Test non-dictionary rows are rejected."""
        with pytest.raises(PlistFormatError):
            normalise_rows([{"id": 1}, [1, 2]], "id")

        with pytest.raises(PlistFormatError):
            normalise_rows({"a": 1}, "id")

    def test_missing_primary_key(self):
        """Test rows without a key are rejected with their position."""
        with pytest.raises(MissingPrimaryKeyError) as exc_info:
            normalise_rows([{"id": 1}, {"id": None}], "id", table="things")

        assert exc_info.value.row_number == 1
        assert exc_info.value.table == "things"
