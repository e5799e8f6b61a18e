"""Command line interface for inspecting and querying plist tables."""

import argparse
import base64
import json
import plistlib
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import structlog

from .config import get_settings
from .exceptions import PlistTableError
from .logging import bind_context, clear_context, configure_logging
from .models.definitions import SortDescriptor
from .table.plist_table import PlistTable

logger = structlog.get_logger(__name__)

_CLI_INDEX = "__cli_sort__"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("utf-8")
    if isinstance(value, plistlib.UID):
        return value.data
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render_json(rows: List[Dict[str, Any]]) -> str:
    """Render rows as an indented JSON array."""
    return json.dumps(rows, indent=2, default=_json_default, ensure_ascii=False)


def render_table(rows: List[Dict[str, Any]]) -> str:
    """Render rows as a plain text column table."""
    if not rows:
        return "(no rows)"

    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    def cell(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, dict)):
            return json.dumps(value, default=_json_default, ensure_ascii=False)
        if isinstance(value, (bytes, bytearray, datetime, plistlib.UID)):
            return str(_json_default(value))
        return str(value)

    cells = [[cell(row.get(column)) for column in columns] for row in rows]
    widths = [
        max(len(column), *(len(line[i]) for line in cells))
        for i, column in enumerate(columns)
    ]

    lines = [
        "  ".join(column.ljust(width) for column, width in zip(columns, widths)).rstrip(),
        "  ".join("-" * width for width in widths),
    ]
    for line in cells:
        lines.append("  ".join(value.ljust(width) for value, width in zip(line, widths)).rstrip())
    return "\n".join(lines)


def _lookup_key(table: PlistTable, raw: str) -> Optional[Dict[str, Any]]:
    record = table.find_by_primary_key(raw)
    if record is None:
        try:
            record = table.find_by_primary_key(int(raw))
        except ValueError:
            pass
    return record


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="plist-table",
        description="Query a property list file as a table of rows",
    )

    parser.add_argument("path", help="Plist file (XML or binary)")

    parser.add_argument(
        "--primary-key",
        "-k",
        required=True,
        help="Property holding each row's unique key",
    )

    parser.add_argument(
        "--where",
        "-w",
        help="Predicate format, e.g. \"age >= 18 AND name BEGINSWITH[c] 'a'\"",
    )

    parser.add_argument(
        "--sort",
        "-s",
        action="append",
        default=[],
        metavar="KEY[:desc][:i]",
        help="Sort key, repeatable; later keys break ties",
    )

    parser.add_argument(
        "--key",
        help="Print only the row with this primary key value",
    )

    parser.add_argument(
        "--format",
        "-f",
        choices=["json", "table"],
        default="json",
        help="Output format (default: json)",
    )

    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (default: PLIST_TABLE_LOG_LEVEL or INFO)",
    )

    return parser


def run(args: argparse.Namespace) -> List[Dict[str, Any]]:
    """Execute a parsed command and return the selected rows."""
    table = PlistTable.from_path(args.path, dict, args.primary_key)

    if args.key is not None:
        record = _lookup_key(table, args.key)
        return [record] if record is not None else []

    index_name = None
    if args.sort:
        table.add_index_with_descriptors(_CLI_INDEX, [SortDescriptor.parse(s) for s in args.sort])
        index_name = _CLI_INDEX

    if args.where:
        return table.find_all_matching(args.where, index_name=index_name)
    if index_name:
        return table.find_all_using_index(index_name)
    return table.find_all()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(log_level=args.log_level, settings=get_settings())
    bind_context(command="plist-table", source=args.path)

    try:
        rows = run(args)
    except (PlistTableError, ValueError) as e:
        logger.debug("cli_command_failed", error=str(e), exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        clear_context()

    output = render_json(rows) if args.format == "json" else render_table(rows)
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
