"""Import and export of boards as portable, versioned JSON documents."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

import jsonschema

from ..errors import ImportFormatError
from .model import Board, MediaItem, TierDefinition
from .palette import COLOR_PALETTE, DEFAULT_COLOR

__all__ = ["EXPORT_VERSION", "EXPORT_SCHEMA", "generate_export_data", "parse_import_data", "dumps_export"]

LOGGER = logging.getLogger(__name__)

EXPORT_VERSION = 1

_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "type", "title"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"enum": ["album", "artist", "song"]},
        "title": {"type": "string"},
        "artist": {"type": ["string", "null"]},
        "album": {"type": ["string", "null"]},
        "year": {"type": ["string", "integer", "null"]},
        "imageUrl": {"type": ["string", "null"]},
        "image_url": {"type": ["string", "null"]},
        "notes": {"type": ["string", "null"]},
        "details": {"type": ["object", "null"]},
    },
}

EXPORT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["tiers"],
    "properties": {
        "version": {"type": "integer", "minimum": 1, "maximum": EXPORT_VERSION},
        "createdAt": {"type": "string"},
        "title": {"type": ["string", "null"]},
        "category": {"type": "string"},
        "tiers": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["label"],
                "properties": {
                    "label": {"type": "string"},
                    "color": {"type": ["string", "null"]},
                    "items": {"type": "array", "items": _ITEM_SCHEMA},
                },
            },
        },
    },
}

_VALIDATOR = jsonschema.Draft202012Validator(EXPORT_SCHEMA)


def generate_export_data(board: Board, *, created_at: datetime | None = None) -> Dict[str, Any]:
    """Return the export document for ``board``; tier ids are not included."""

    timestamp = (created_at or datetime.now(timezone.utc)).isoformat()
    return {
        "version": EXPORT_VERSION,
        "createdAt": timestamp,
        "title": board.title,
        "category": board.category,
        "tiers": [
            {
                "label": tier.label,
                "color": tier.color,
                "items": [item.to_dict() for item in board.items_in(tier.id)],
            }
            for tier in board.tiers
        ],
    }


def dumps_export(board: Board) -> str:
    return json.dumps(generate_export_data(board), indent=2)


def parse_import_data(text: str | bytes | Mapping[str, Any], fallback_title: str) -> Board:
    """Validate an export document and build a fresh board from it.

    Raises :class:`ImportFormatError` on malformed JSON or schema mismatch.
    """

    if isinstance(text, Mapping):
        payload: Any = dict(text)
    else:
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ImportFormatError(f"Import is not valid JSON: {exc}") from exc

    error = jsonschema.exceptions.best_match(_VALIDATOR.iter_errors(payload))
    if error is not None:
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        raise ImportFormatError(
            "Invalid tier list file format.",
            details={"path": location, "reason": error.message},
        )

    tiers: list[TierDefinition] = []
    items: dict[str, tuple[MediaItem, ...]] = {}
    seen: set[str] = set()
    for entry in payload["tiers"]:
        tier_id = uuid.uuid4().hex
        color = entry.get("color")
        if color not in COLOR_PALETTE:
            color = DEFAULT_COLOR.id
        tiers.append(TierDefinition(id=tier_id, label=entry["label"], color=color))
        tier_items: list[MediaItem] = []
        for raw in entry.get("items") or ():
            item = MediaItem.from_dict(raw)
            if item.id in seen:
                LOGGER.debug("Skipping duplicate imported item %s", item.id)
                continue
            seen.add(item.id)
            tier_items.append(item)
        items[tier_id] = tuple(tier_items)

    return Board(
        title=payload.get("title") or fallback_title,
        tiers=tuple(tiers),
        items=items,
        category=payload.get("category") or "music",
    )
