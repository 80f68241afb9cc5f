"""Lightweight metadata index over every stored board."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Mapping

from ..board.model import Board, default_board
from .storage import BOARD_INDEX_KEY, StorageBackend, board_key, board_meta_key

__all__ = ["BoardIndex", "BoardMetadata", "TierPreview", "build_preview", "PREVIEW_IMAGES_PER_TIER"]

LOGGER = logging.getLogger(__name__)

PREVIEW_IMAGES_PER_TIER = 10
DEFAULT_NEW_BOARD_TITLE = "Untitled Board"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True, frozen=True)
class TierPreview:
    id: str
    label: str
    color: str
    image_urls: tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "color": self.color, "imageUrls": list(self.image_urls)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TierPreview":
        return cls(
            id=str(payload.get("id", "")),
            label=str(payload.get("label", "")),
            color=str(payload.get("color", "neutral")),
            image_urls=tuple(str(url) for url in payload.get("imageUrls") or () if url),
        )


@dataclass(slots=True, frozen=True)
class BoardMetadata:
    """Dashboard record for one board; loaded without touching the full board."""

    id: str
    title: str
    category: str = "music"
    created_at: int = 0
    last_modified_at: int = 0
    item_count: int = 0
    preview: tuple[TierPreview, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "createdAt": self.created_at,
            "lastModifiedAt": self.last_modified_at,
            "itemCount": self.item_count,
            "preview": [entry.to_dict() for entry in self.preview],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BoardMetadata":
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title") or ""),
            category=str(payload.get("category") or "music"),
            created_at=int(payload.get("createdAt") or 0),
            last_modified_at=int(payload.get("lastModifiedAt") or 0),
            item_count=int(payload.get("itemCount") or 0),
            preview=tuple(TierPreview.from_dict(entry) for entry in payload.get("preview") or ()),
        )


def build_preview(board: Board, *, limit: int = PREVIEW_IMAGES_PER_TIER) -> tuple[TierPreview, ...]:
    """Miniature of ``board``: up to ``limit`` image references per tier."""

    previews = []
    for tier in board.tiers:
        urls = tuple(item.image_url for item in board.items_in(tier.id)[:limit] if item.image_url)
        previews.append(TierPreview(id=tier.id, label=tier.label, color=tier.color, image_urls=urls))
    return tuple(previews)


class BoardIndex:
    """Create, list, delete and refresh board metadata records.

    All read-modify-write cycles are serialized through one asyncio lock so
    concurrent board sessions cannot lose each other's index updates.
    """

    def __init__(self, storage: StorageBackend, *, clock: Callable[[], int] = _now_ms) -> None:
        self._storage = storage
        self._clock = clock
        self._lock = asyncio.Lock()

    async def list_boards(self) -> list[BoardMetadata]:
        ids = await self._read_index()
        boards: list[BoardMetadata] = []
        for board_id in ids:
            record = await asyncio.to_thread(self._storage.read, board_meta_key(board_id))
            if not isinstance(record, Mapping):
                LOGGER.debug("Board %s listed in index without metadata", board_id)
                continue
            try:
                boards.append(BoardMetadata.from_dict(record))
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Ignoring malformed metadata for board %s: %s", board_id, exc)
        boards.sort(key=lambda meta: meta.last_modified_at, reverse=True)
        return boards

    async def get_metadata(self, board_id: str) -> BoardMetadata | None:
        record = await asyncio.to_thread(self._storage.read, board_meta_key(board_id))
        if not isinstance(record, Mapping):
            return None
        return BoardMetadata.from_dict(record)

    async def create_board(self, title: str = DEFAULT_NEW_BOARD_TITLE, category: str = "music") -> str:
        board_id = str(uuid.uuid4())
        now = self._clock()
        seeded = default_board(title=title, category=category)
        meta = BoardMetadata(
            id=board_id,
            title=title,
            category=category,
            created_at=now,
            last_modified_at=now,
            item_count=0,
            preview=build_preview(seeded),
        )
        async with self._lock:
            await asyncio.to_thread(self._storage.write, board_meta_key(board_id), meta.to_dict())
            await asyncio.to_thread(self._storage.write, board_key(board_id), seeded.to_dict())
            ids = await self._read_index()
            if board_id not in ids:
                ids.append(board_id)
                await asyncio.to_thread(self._storage.write, BOARD_INDEX_KEY, ids)
        LOGGER.info("Created board %s (%s)", board_id, title)
        return board_id

    async def delete_board(self, board_id: str) -> bool:
        async with self._lock:
            ids = await self._read_index()
            existed = board_id in ids
            await asyncio.to_thread(self._storage.delete, board_meta_key(board_id))
            await asyncio.to_thread(self._storage.delete, board_key(board_id))
            if existed:
                ids = [entry for entry in ids if entry != board_id]
                await asyncio.to_thread(self._storage.write, BOARD_INDEX_KEY, ids)
        LOGGER.info("Deleted board %s", board_id)
        return existed

    async def update_metadata(self, board_id: str, **updates: Any) -> BoardMetadata | None:
        """Apply ``updates`` to an existing record and bump ``last_modified_at``."""

        allowed = {"title", "category", "item_count", "preview"}
        unknown = set(updates) - allowed
        if unknown:
            raise TypeError(f"Unknown metadata fields: {sorted(unknown)}")
        async with self._lock:
            current = await self.get_metadata(board_id)
            if current is None:
                return None
            meta = replace(current, last_modified_at=self._clock(), **updates)
            await asyncio.to_thread(self._storage.write, board_meta_key(board_id), meta.to_dict())
        return meta

    async def sync_board(self, board_id: str, board: Board) -> bool:
        """Refresh metadata from ``board``. Returns False when nothing changed."""

        preview = build_preview(board)
        item_count = board.item_count
        async with self._lock:
            current = await self.get_metadata(board_id)
            now = self._clock()
            if current is not None:
                if (
                    current.title == board.title
                    and current.item_count == item_count
                    and current.preview == preview
                ):
                    return False
                meta = replace(
                    current,
                    title=board.title,
                    item_count=item_count,
                    preview=preview,
                    last_modified_at=now,
                )
            else:
                LOGGER.info("Re-creating missing metadata for board %s", board_id)
                meta = BoardMetadata(
                    id=board_id,
                    title=board.title,
                    category=board.category,
                    created_at=now,
                    last_modified_at=now,
                    item_count=item_count,
                    preview=preview,
                )
            await asyncio.to_thread(self._storage.write, board_meta_key(board_id), meta.to_dict())
            ids = await self._read_index()
            if board_id not in ids:
                ids.append(board_id)
                await asyncio.to_thread(self._storage.write, BOARD_INDEX_KEY, ids)
        return True

    async def _read_index(self) -> list[str]:
        record = await asyncio.to_thread(self._storage.read, BOARD_INDEX_KEY)
        if not isinstance(record, list):
            return []
        return [str(entry) for entry in record]
