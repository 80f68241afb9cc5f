"""Builders shared by the test modules."""

from __future__ import annotations

from typing import Any

from tierboard.board.model import Board, MediaItem, MediaType, TierDefinition


def make_item(item_id: str, **overrides: Any) -> MediaItem:
    payload: dict[str, Any] = {
        "id": item_id,
        "type": MediaType.ALBUM,
        "title": f"Title {item_id}",
        "artist": "Artist",
    }
    payload.update(overrides)
    return MediaItem(**payload)


def make_board(layout: dict[str, list[str]], *, title: str = "Test Board") -> Board:
    """Board whose tiers are named by ``layout`` keys, holding items with the given ids."""

    tiers = tuple(TierDefinition(id=tier_id, label=tier_id.upper(), color="neutral") for tier_id in layout)
    items = {tier_id: tuple(make_item(item_id) for item_id in ids) for tier_id, ids in layout.items()}
    return Board(title=title, tiers=tiers, items=items)


def item_ids(board: Board, tier_id: str) -> list[str]:
    return [item.id for item in board.items_in(tier_id)]
