"""Pure state transitions for the tier board.

:func:`reduce_board` never mutates its input and returns the very same
:class:`Board` instance when an action changes nothing, so callers can skip
render and persistence work with an identity check.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import replace
from typing import Any, Callable, Mapping

from .actions import (
    Action,
    AddTier,
    ClearBoard,
    DeleteTier,
    MoveItem,
    RandomizeColors,
    RemoveItem,
    ReorderTiers,
    ReplaceState,
    UpdateItem,
    UpdateTier,
    UpdateTitle,
)
from .diff import changed_fields
from .model import DEFAULT_TIER_LABEL, Board, TierDefinition, default_board
from .moves import array_move, move_item
from .palette import TIER_COLORS

__all__ = ["reduce_board", "reduce_tiers", "reduce_items", "reduce_global"]

LOGGER = logging.getLogger(__name__)

_TIER_FIELDS = frozenset({"label", "color"})

SliceReducer = Callable[[Board, Action, random.Random], Board]


def reduce_board(board: Board, action: Action, *, rng: random.Random | None = None) -> Board:
    """Apply ``action`` to ``board`` and return the next board."""

    generator = rng or random.Random()
    for slice_reducer in _SLICES:
        next_board = slice_reducer(board, action, generator)
        if next_board is not board:
            return next_board
    if not isinstance(action, _KNOWN_ACTIONS):
        raise TypeError(f"Unsupported board action: {type(action).__name__}")
    return board


# ----------------------------------------------------------------------
# Tier slice
# ----------------------------------------------------------------------
def reduce_tiers(board: Board, action: Action, rng: random.Random) -> Board:
    if isinstance(action, AddTier):
        return _add_tier(board, action, rng)
    if isinstance(action, DeleteTier):
        return _delete_tier(board, action.tier_id)
    if isinstance(action, UpdateTier):
        return _update_tier(board, action.tier_id, action.updates)
    if isinstance(action, ReorderTiers):
        return _reorder_tiers(board, action.old_index, action.new_index)
    if isinstance(action, RandomizeColors):
        return _randomize_colors(board, rng)
    return board


def _add_tier(board: Board, action: AddTier, rng: random.Random) -> Board:
    tier_id = action.tier_id or uuid.uuid4().hex
    if board.has_tier(tier_id):
        return board
    used = {tier.color for tier in board.tiers}
    available = [color for color in TIER_COLORS if color.id not in used]
    color = rng.choice(available or list(TIER_COLORS))
    tier = TierDefinition(id=tier_id, label=action.label or DEFAULT_TIER_LABEL, color=color.id)
    return replace(board, tiers=board.tiers + (tier,), items={**board.items, tier_id: ()})


def _delete_tier(board: Board, tier_id: str) -> Board:
    if not board.has_tier(tier_id):
        return board
    remaining = tuple(tier for tier in board.tiers if tier.id != tier_id)
    orphans = board.items.get(tier_id, ())
    items = {key: value for key, value in board.items.items() if key != tier_id}
    if remaining and orphans:
        fallback = remaining[0].id
        items[fallback] = tuple(items.get(fallback, ())) + tuple(orphans)
    elif orphans:
        LOGGER.debug("Dropping %d item(s) with the last tier %s", len(orphans), tier_id)
    return replace(board, tiers=remaining, items=items)


def _update_tier(board: Board, tier_id: str, updates: Mapping[str, Any]) -> Board:
    tier = board.get_tier(tier_id)
    if tier is None:
        return board
    allowed = {key: value for key, value in updates.items() if key in _TIER_FIELDS}
    changes = changed_fields(tier, allowed)
    if not changes:
        return board
    updated = replace(tier, **{key: str(value) for key, value in changes.items()})
    tiers = tuple(updated if entry.id == tier_id else entry for entry in board.tiers)
    return replace(board, tiers=tiers)


def _reorder_tiers(board: Board, old_index: int, new_index: int) -> Board:
    count = len(board.tiers)
    if old_index == new_index:
        return board
    if not (0 <= old_index < count and 0 <= new_index < count):
        return board
    return replace(board, tiers=array_move(board.tiers, old_index, new_index))


def _randomize_colors(board: Board, rng: random.Random) -> Board:
    if not board.tiers:
        return board
    pool: list[str] = []
    tiers = []
    for tier in board.tiers:
        if not pool:
            pool = [color.id for color in TIER_COLORS]
        color_id = pool.pop(rng.randrange(len(pool)))
        tiers.append(replace(tier, color=color_id))
    return replace(board, tiers=tuple(tiers))


# ----------------------------------------------------------------------
# Item slice
# ----------------------------------------------------------------------
def reduce_items(board: Board, action: Action, rng: random.Random) -> Board:
    if isinstance(action, MoveItem):
        return move_item(
            board,
            action.active_id,
            action.over_id,
            source_tier=action.source_tier,
            item=action.item,
        )
    if isinstance(action, UpdateItem):
        return _update_item(board, action.item_id, action.updates)
    if isinstance(action, RemoveItem):
        return _remove_item(board, action.tier_id, action.item_id)
    return board


def _update_item(board: Board, item_id: str, updates: Mapping[str, Any]) -> Board:
    tier_id = board.container_of(item_id)
    if tier_id is None:
        return board
    tier_items = board.items.get(tier_id, ())
    for index, item in enumerate(tier_items):
        if item.id != item_id:
            continue
        updated = item.merged(updates)
        if updated is item:
            return board
        replaced = tier_items[:index] + (updated,) + tier_items[index + 1 :]
        return replace(board, items={**board.items, tier_id: replaced})
    return board


def _remove_item(board: Board, tier_id: str, item_id: str) -> Board:
    tier_items = board.items.get(tier_id)
    if not tier_items or not any(item.id == item_id for item in tier_items):
        return board
    remaining = tuple(item for item in tier_items if item.id != item_id)
    return replace(board, items={**board.items, tier_id: remaining})


# ----------------------------------------------------------------------
# Global slice
# ----------------------------------------------------------------------
def reduce_global(board: Board, action: Action, rng: random.Random) -> Board:
    if isinstance(action, UpdateTitle):
        if action.title == board.title:
            return board
        return replace(board, title=action.title)
    if isinstance(action, ClearBoard):
        cleared = default_board(category=board.category)
        if cleared == board:
            return board
        return cleared
    if isinstance(action, ReplaceState):
        return action.board
    return board


_SLICES: tuple[SliceReducer, ...] = (reduce_tiers, reduce_items, reduce_global)
_KNOWN_ACTIONS = (
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
)
