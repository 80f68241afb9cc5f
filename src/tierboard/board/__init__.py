"""Board state model, pure reducer, move algorithm and undo history."""

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
from .history import HistoryManager
from .model import Board, MediaItem, MediaType, TierDefinition, default_board
from .reducer import reduce_board

__all__ = [
    "Action",
    "AddTier",
    "Board",
    "ClearBoard",
    "DeleteTier",
    "HistoryManager",
    "MediaItem",
    "MediaType",
    "MoveItem",
    "RandomizeColors",
    "RemoveItem",
    "ReorderTiers",
    "ReplaceState",
    "TierDefinition",
    "UpdateItem",
    "UpdateTier",
    "UpdateTitle",
    "default_board",
    "reduce_board",
]
