"""Positional move algorithm behind the MoveItem action.

Drops are resolved purely by ordinal position: dropping onto a tier appends,
dropping onto an item inserts before it. Within a single tier the move is a
stable array move from the source index to the target's index.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence, TypeVar

from .model import Board, MediaItem

__all__ = [
    "array_move",
    "find_container",
    "find_item_container",
    "insertion_index",
    "move_item",
]

T = TypeVar("T")


def array_move(values: Sequence[T], from_index: int, to_index: int) -> tuple[T, ...]:
    """Return ``values`` with the element at ``from_index`` moved to ``to_index``."""

    moved = list(values)
    if not moved:
        return tuple(moved)
    element = moved.pop(from_index)
    moved.insert(to_index, element)
    return tuple(moved)


def find_container(board: Board, target_id: str) -> str | None:
    """Resolve a drop target: a tier id names itself, an item id names its tier."""

    if board.has_tier(target_id):
        return target_id
    return board.container_of(target_id)


def find_item_container(board: Board, item_id: str, *, hint: str | None = None) -> str | None:
    """Tier holding ``item_id``; ``hint`` is checked first when supplied."""

    if hint is not None and any(item.id == item_id for item in board.items.get(hint, ())):
        return hint
    return board.container_of(item_id)


def insertion_index(items: Sequence[MediaItem], over_id: str, *, over_is_container: bool) -> int:
    if over_is_container:
        return len(items)
    for index, item in enumerate(items):
        if item.id == over_id:
            return index
    return len(items)


def move_item(
    board: Board,
    active_id: str,
    over_id: str,
    *,
    source_tier: str | None = None,
    item: MediaItem | None = None,
) -> Board:
    """Apply a drag of ``active_id`` onto ``over_id``.

    Returns ``board`` itself whenever the move changes nothing.
    """

    over_container = find_container(board, over_id)
    if over_container is None:
        return board

    active_container = find_item_container(board, active_id, hint=source_tier)
    if active_container is None:
        if item is None:
            return board
        return _insert_new(board, item, over_id, over_container)

    if active_container == over_container:
        return _sort_within(board, active_id, over_id, active_container)

    return _move_between(board, active_id, over_id, active_container, over_container)


def _insert_new(board: Board, item: MediaItem, over_id: str, container: str) -> Board:
    if board.container_of(item.id) is not None:
        return board
    target_items = board.items.get(container, ())
    index = insertion_index(target_items, over_id, over_is_container=over_id == container)
    updated = target_items[:index] + (item,) + target_items[index:]
    return replace(board, items={**board.items, container: updated})


def _sort_within(board: Board, active_id: str, over_id: str, container: str) -> Board:
    if over_id == container:
        return board
    current = board.items.get(container, ())
    ids = [entry.id for entry in current]
    active_index = ids.index(active_id)
    over_index = ids.index(over_id)
    if active_index == over_index:
        return board
    return replace(board, items={**board.items, container: array_move(current, active_index, over_index)})


def _move_between(board: Board, active_id: str, over_id: str, source: str, target: str) -> Board:
    source_items = board.items.get(source, ())
    moving = next(entry for entry in source_items if entry.id == active_id)
    remaining = tuple(entry for entry in source_items if entry.id != active_id)
    target_items = board.items.get(target, ())
    index = insertion_index(target_items, over_id, over_is_container=over_id == target)
    updated = target_items[:index] + (moving,) + target_items[index:]
    return replace(board, items={**board.items, source: remaining, target: updated})
