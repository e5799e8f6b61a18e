"""Plist loading."""

from .plist_loader import normalise_rows, read_plist, resolve_resource, resource_filename

__all__ = ["normalise_rows", "read_plist", "resolve_resource", "resource_filename"]
