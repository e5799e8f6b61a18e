"""Plist resource resolution and parsing.

A table's data lives in a property list whose root is either an array of
dictionaries (one per row) or a dictionary of dictionaries keyed by the
primary key value.
"""

import plistlib
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from xml.parsers.expat import ExpatError

import structlog

from ..exceptions import MissingPrimaryKeyError, PlistFormatError, ResourceNotFoundError

logger = structlog.get_logger(__name__)

PlistSource = Union[str, Path, Traversable, bytes]


def resource_filename(resource_name: str, extension: str = ".plist") -> str:
    """Append the plist extension unless the name already carries it."""
    if resource_name.endswith(extension):
        return resource_name
    return f"{resource_name}{extension}"


def resolve_resource(
    resource_name: str,
    search_paths: Sequence[Union[str, Path]] = (),
    package: Optional[str] = None,
    extension: str = ".plist",
) -> Union[Path, Traversable]:
    """
    Find the plist file backing a resource name.

    The package (when given) is searched first, then each search path in
    order.

    Args:
        resource_name: Resource name with or without extension
        search_paths: Directories to search
        package: Importable package holding the resource as package data
        extension: Plist file extension

    Returns:
        Path or importlib Traversable of the plist

    Raises:
        ResourceNotFoundError: If no candidate exists
    """
    filename = resource_filename(resource_name, extension)
    searched: List[str] = []

    if package is not None:
        candidate = resources.files(package).joinpath(filename)
        searched.append(f"package:{package}")
        if candidate.is_file():
            logger.debug("plist_resource_resolved", resource=resource_name, package=package)
            return candidate

    for directory in search_paths:
        candidate_path = Path(directory) / filename
        searched.append(str(directory))
        if candidate_path.is_file():
            logger.debug(
                "plist_resource_resolved", resource=resource_name, path=str(candidate_path)
            )
            return candidate_path

    logger.warning("plist_resource_not_found", resource=resource_name, searched=searched)
    raise ResourceNotFoundError(resource_name, searched)


def read_plist(source: PlistSource) -> Any:
    """
    Parse a property list from a path, package resource or raw bytes.

    XML and binary formats are detected automatically.

    Raises:
        ResourceNotFoundError: If a path does not exist
        PlistFormatError: If the content is not a valid plist
    """
    name = "<bytes>" if isinstance(source, bytes) else str(source)
    try:
        if isinstance(source, bytes):
            return plistlib.loads(source)
        if isinstance(source, str):
            source = Path(source)
        with source.open("rb") as handle:
            return plistlib.load(handle)
    except FileNotFoundError as e:
        raise ResourceNotFoundError(name, [name]) from e
    except (
        plistlib.InvalidFileException, ExpatError, ValueError, TypeError, KeyError, AttributeError
    ) as e:
        # Malformed XML and truncated binary plists surface as several types
        logger.error("plist_parse_failed", source=name, error=str(e))
        raise PlistFormatError(f"cannot parse plist {name}: {e}", table=name) from e


def normalise_rows(root: Any, primary_key: str, table: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Turn a plist root object into a list of row dictionaries.

    Args:
        root: Parsed plist root
        primary_key: Primary key property, injected for keyed layouts
        table: Table name for error messages

    Returns:
        Rows in file order

    Raises:
        PlistFormatError: If the root or a row has the wrong shape
        MissingPrimaryKeyError: If a row has no primary key value
    """
    if isinstance(root, list):
        rows = []
        for number, row in enumerate(root):
            if not isinstance(row, dict):
                raise PlistFormatError(
                    f"row {number} is a {type(row).__name__}, expected a dictionary",
                    table=table,
                )
            rows.append(dict(row))
    elif isinstance(root, dict):
        rows = []
        for number, (key, row) in enumerate(root.items()):
            if not isinstance(row, dict):
                raise PlistFormatError(
                    f"entry {key!r} is a {type(row).__name__}, expected a dictionary",
                    table=table,
                )
            row = dict(row)
            row.setdefault(primary_key, key)
            rows.append(row)
    else:
        raise PlistFormatError(
            f"plist root is a {type(root).__name__}, expected an array or dictionary",
            table=table,
        )

    for number, row in enumerate(rows):
        if row.get(primary_key) is None:
            logger.error(
                "plist_row_missing_primary_key",
                table=table,
                row_number=number,
                primary_key=primary_key,
            )
            raise MissingPrimaryKeyError(primary_key, number, table=table)

    return rows
