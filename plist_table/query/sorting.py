"""Key path resolution and multi-key record sorting."""

from collections.abc import Mapping
from functools import cmp_to_key
from typing import Any, Iterable, List, Sequence

from ..models.definitions import SortDescriptor


def value_for_key_path(obj: Any, key_path: str) -> Any:
    """
    Resolve a dotted key path against a record, row or nested value.

    Mappings are traversed by key, everything else by attribute. A missing
    segment anywhere along the path yields None.

    Args:
        obj: Record, row dictionary or nested value
        key_path: Dotted path such as ``address.city``

    Returns:
        The resolved value, or None
    """
    current = obj
    for segment in key_path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        else:
            current = getattr(current, segment, None)
    return current


def compare_values(left: Any, right: Any, case_insensitive: bool = False) -> int:
    """
    Three-way comparison used by sorting.

    None sorts before every other value. Values of types that cannot be
    ordered against each other are ordered by type name so that sorting
    never raises.

    Returns:
        Negative, zero or positive like a classic ``cmp``
    """
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1

    if case_insensitive and isinstance(left, str) and isinstance(right, str):
        left, right = left.casefold(), right.casefold()

    try:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0
    except TypeError:
        left_name, right_name = type(left).__name__, type(right).__name__
        return (left_name > right_name) - (left_name < right_name)


def _descriptor_comparator(descriptors: Sequence[SortDescriptor]):
    def compare(left: Any, right: Any) -> int:
        for descriptor in descriptors:
            result = compare_values(
                value_for_key_path(left, descriptor.key),
                value_for_key_path(right, descriptor.key),
                descriptor.case_insensitive,
            )
            if result:
                return result if descriptor.ascending else -result
        return 0

    return compare


def sort_records(records: Iterable[Any], descriptors: Sequence[SortDescriptor]) -> List[Any]:
    """
    Sort records by a list of descriptors.

    Later descriptors only break ties left by earlier ones, and records that
    compare equal on every descriptor keep their original relative order.

    Args:
        records: Records to sort
        descriptors: Sort keys, most significant first

    Returns:
        New sorted list
    """
    return sorted(records, key=cmp_to_key(_descriptor_comparator(descriptors)))
