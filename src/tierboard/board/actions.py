"""Closed set of actions accepted by :func:`tierboard.board.reducer.reduce_board`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from .model import Board, MediaItem

__all__ = [
    "Action",
    "AddTier",
    "ClearBoard",
    "DeleteTier",
    "MoveItem",
    "RandomizeColors",
    "RemoveItem",
    "ReorderTiers",
    "ReplaceState",
    "UpdateItem",
    "UpdateTier",
    "UpdateTitle",
]


@dataclass(slots=True, frozen=True)
class AddTier:
    """Append a tier. ``tier_id`` is generated when omitted."""

    tier_id: str | None = None
    label: str | None = None


@dataclass(slots=True, frozen=True)
class DeleteTier:
    tier_id: str


@dataclass(slots=True, frozen=True)
class UpdateTier:
    tier_id: str
    updates: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class ReorderTiers:
    old_index: int
    new_index: int


@dataclass(slots=True, frozen=True)
class MoveItem:
    """Move ``active_id`` onto ``over_id`` (a tier id or another item's id).

    ``item`` carries the payload when the item is new to the board, e.g.
    dragged in from search results.
    """

    active_id: str
    over_id: str
    source_tier: str | None = None
    item: MediaItem | None = None


@dataclass(slots=True, frozen=True)
class UpdateItem:
    item_id: str
    updates: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class RemoveItem:
    tier_id: str
    item_id: str


@dataclass(slots=True, frozen=True)
class UpdateTitle:
    title: str


@dataclass(slots=True, frozen=True)
class RandomizeColors:
    pass


@dataclass(slots=True, frozen=True)
class ClearBoard:
    pass


@dataclass(slots=True, frozen=True)
class ReplaceState:
    """Swap in a whole board (import, undo/redo, hydration)."""

    board: Board


Action = Union[
    AddTier,
    DeleteTier,
    UpdateTier,
    ReorderTiers,
    MoveItem,
    UpdateItem,
    RemoveItem,
    UpdateTitle,
    RandomizeColors,
    ClearBoard,
    ReplaceState,
]
