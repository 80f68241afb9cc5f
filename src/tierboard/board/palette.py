"""Tier color palette."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["ColorTheme", "COLOR_PALETTE", "TIER_COLORS", "DEFAULT_COLOR", "get_color"]


@dataclass(slots=True, frozen=True)
class ColorTheme:
    id: str
    label: str
    hex: str


TIER_COLORS: tuple[ColorTheme, ...] = (
    ColorTheme("red", "Red", "#ef4444"),
    ColorTheme("orange", "Orange", "#f97316"),
    ColorTheme("amber", "Amber", "#fbbf24"),
    ColorTheme("yellow", "Yellow", "#fde047"),
    ColorTheme("lime", "Lime", "#a3e635"),
    ColorTheme("green", "Green", "#22c55e"),
    ColorTheme("teal", "Teal", "#2dd4bf"),
    ColorTheme("cyan", "Cyan", "#22d3ee"),
    ColorTheme("blue", "Blue", "#3b82f6"),
    ColorTheme("indigo", "Indigo", "#6366f1"),
    ColorTheme("purple", "Purple", "#a855f7"),
    ColorTheme("pink", "Pink", "#ec4899"),
    ColorTheme("rose", "Rose", "#f43f5e"),
    ColorTheme("neutral", "Neutral", "#737373"),
    ColorTheme("slate", "Slate", "#475569"),
)

COLOR_PALETTE: dict[str, ColorTheme] = {color.id: color for color in TIER_COLORS}

DEFAULT_COLOR = COLOR_PALETTE["neutral"]


def get_color(color_id: str | None) -> ColorTheme:
    """Return the palette entry for ``color_id``, falling back to neutral."""

    if not color_id:
        return DEFAULT_COLOR
    return COLOR_PALETTE.get(color_id, DEFAULT_COLOR)
