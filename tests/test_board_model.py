"""Tests for the board dataclasses and palette."""

from __future__ import annotations

import pytest

from tierboard.board.model import Board, MediaItem, MediaType, default_board
from tierboard.board.palette import COLOR_PALETTE, DEFAULT_COLOR, TIER_COLORS, get_color

from helpers import make_board, make_item


def test_default_board_layout() -> None:
    board = default_board()

    assert board.title == "My Tier List"
    assert board.category == "music"
    assert [tier.label for tier in board.tiers] == ["S", "A", "B", "C", "D", "Unranked"]
    assert [tier.color for tier in board.tiers] == ["red", "orange", "amber", "green", "blue", "neutral"]
    assert board.tier_ids() == [f"tier-{index}" for index in range(1, 7)]
    assert all(board.items_in(tier_id) == () for tier_id in board.tier_ids())


def test_item_lookup_is_derived_from_items() -> None:
    board = make_board({"s": ["x", "y"], "a": ["z"]})

    assert board.item_lookup == {"x": "s", "y": "s", "z": "a"}
    assert board.container_of("z") == "a"
    assert board.get_item("y").id == "y"
    assert board.get_item("missing") is None
    assert board.item_count == 3
    assert [item.id for item in board.iter_items()] == ["x", "y", "z"]


def test_board_dict_roundtrip_preserves_items() -> None:
    board = make_board({"s": ["x"], "a": []})

    restored = Board.from_dict(board.to_dict())

    assert restored == board
    assert restored.item_lookup == board.item_lookup


def test_from_dict_tolerates_missing_item_lists_and_unknown_tiers() -> None:
    payload = {
        "title": "Partial",
        "tiers": [{"id": "s", "label": "S", "color": "red"}],
        "items": {"ghost": [{"id": "g", "type": "album", "title": "Ghost"}]},
    }

    board = Board.from_dict(payload)

    assert board.items == {"s": ()}
    assert board.category == "music"
    assert board.container_of("g") is None


def test_from_dict_drops_duplicate_item_ids() -> None:
    payload = {
        "tiers": [{"id": "s", "label": "S"}, {"id": "a", "label": "A"}],
        "items": {
            "s": [{"id": "x", "type": "album", "title": "X"}],
            "a": [{"id": "x", "type": "album", "title": "X again"}],
        },
    }

    board = Board.from_dict(payload)

    assert board.item_count == 1
    assert board.container_of("x") == "s"


def test_media_item_merged_returns_self_without_changes() -> None:
    item = make_item("x", details={"tracks": ["a", "b"]})

    assert item.merged({"title": item.title}) is item
    assert item.merged({"details": {"tracks": ["a", "b"]}}) is item
    assert item.merged({"unknown": 1, "id": "other"}) is item


def test_media_item_merged_applies_changes() -> None:
    item = make_item("x")

    updated = item.merged({"image_url": "http://img", "type": "song"})

    assert updated is not item
    assert updated.image_url == "http://img"
    assert updated.type is MediaType.SONG
    assert item.image_url is None


def test_media_item_from_dict_accepts_camel_case_image() -> None:
    item = MediaItem.from_dict({"id": "x", "type": "artist", "title": "Name", "imageUrl": "http://img", "year": 1999})

    assert item.image_url == "http://img"
    assert item.year == "1999"
    assert item.type is MediaType.ARTIST
    assert item.to_dict() == {"id": "x", "type": "artist", "title": "Name", "year": "1999", "image_url": "http://img"}


def test_media_item_requires_id() -> None:
    with pytest.raises(ValueError):
        MediaItem.from_dict({"type": "album", "title": "No id"})


def test_palette_lookup_falls_back_to_neutral() -> None:
    assert len(TIER_COLORS) == 15
    assert set(COLOR_PALETTE) >= {"red", "neutral", "slate"}
    assert get_color("red").id == "red"
    assert get_color("not-a-color") is DEFAULT_COLOR
    assert DEFAULT_COLOR.id == "neutral"
