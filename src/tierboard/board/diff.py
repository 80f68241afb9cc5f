"""Structural comparison helpers shared by the reducer, registry and persistence.

Partial updates only ever *add* information: a ``None`` value in an update
means "not provided" and never unsets a field.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

__all__ = [
    "changed_fields",
    "has_updates",
    "is_empty",
    "structurally_equal",
]


def is_empty(value: Any) -> bool:
    """True for ``None``, empty strings and empty containers."""

    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def structurally_equal(left: Any, right: Any) -> bool:
    """Deep equality over mappings, sequences, dataclass-like values and scalars."""

    if left is right:
        return True
    left = _plain(left)
    right = _plain(right)
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(structurally_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(structurally_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False
    return left == right


def changed_fields(
    current: Any,
    updates: Mapping[str, Any],
    *,
    empty_as_missing: bool = False,
) -> dict[str, Any]:
    """Return the subset of ``updates`` that would change ``current``.

    ``current`` may be a mapping or an object exposing the keys as attributes.
    With ``empty_as_missing`` empty strings/containers on either side are
    treated like absent values.
    """

    changed: dict[str, Any] = {}
    for key, new_value in updates.items():
        if new_value is None:
            continue
        if empty_as_missing and is_empty(new_value):
            continue
        old_value = _lookup(current, key)
        if empty_as_missing and is_empty(old_value):
            old_value = None
        if not structurally_equal(old_value, new_value):
            changed[key] = new_value
    return changed


def has_updates(current: Any, updates: Mapping[str, Any], *, empty_as_missing: bool = False) -> bool:
    return bool(changed_fields(current, updates, empty_as_missing=empty_as_missing))


def _lookup(current: Any, key: str) -> Any:
    if current is None:
        return None
    if isinstance(current, Mapping):
        return current.get(key)
    return getattr(current, key, None)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, Mapping):
        return to_dict()
    return value
