"""Dataclasses representing the tier board and the media items placed on it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, Mapping

from .diff import changed_fields

__all__ = [
    "Board",
    "DEFAULT_CATEGORY",
    "DEFAULT_TIER_LABEL",
    "DEFAULT_TITLE",
    "MediaItem",
    "MediaType",
    "TierDefinition",
    "default_board",
]

DEFAULT_TITLE = "My Tier List"
DEFAULT_TIER_LABEL = "New Tier"
DEFAULT_CATEGORY = "music"

# Alternate spellings accepted when reading exported/imported payloads.
_ITEM_ALIASES: Mapping[str, str] = {"imageUrl": "image_url"}


class MediaType(str, Enum):
    """Closed set of catalog entry kinds."""

    ALBUM = "album"
    ARTIST = "artist"
    SONG = "song"

    @classmethod
    def coerce(cls, value: Any) -> "MediaType":
        if isinstance(value, MediaType):
            return value
        return cls(str(value).strip().lower())


@dataclass(slots=True, frozen=True)
class MediaItem:
    """A single catalog entry. Copies on a board are values."""

    id: str
    type: MediaType
    title: str
    artist: str | None = None
    album: str | None = None
    year: str | None = None
    image_url: str | None = None
    notes: str | None = None
    details: Mapping[str, Any] | None = None

    @property
    def has_details(self) -> bool:
        return bool(self.details)

    def merged(self, updates: Mapping[str, Any]) -> "MediaItem":
        """Return a copy with ``updates`` applied, or ``self`` when nothing changes.

        A ``type`` outside :class:`MediaType` or non-mapping ``details`` is ignored.
        """

        known = {key: value for key, value in updates.items() if key in _ITEM_FIELDS and key != "id"}
        if known.get("type") is not None:
            try:
                known["type"] = MediaType.coerce(known["type"])
            except ValueError:
                del known["type"]
        if known.get("details") is not None and not isinstance(known["details"], Mapping):
            del known["details"]
        changes = changed_fields(self, known)
        if not changes:
            return self
        if "details" in changes:
            changes["details"] = dict(changes["details"])
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "type": self.type.value, "title": self.title}
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            payload[name] = dict(value) if name == "details" else value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MediaItem":
        data = {_ITEM_ALIASES.get(key, key): value for key, value in payload.items()}
        item_id = data.get("id")
        if not item_id:
            raise ValueError("Media item payload is missing an id")
        details = data.get("details")
        year = data.get("year")
        return cls(
            id=str(item_id),
            type=MediaType.coerce(data.get("type", MediaType.ALBUM)),
            title=str(data.get("title") or ""),
            artist=data.get("artist") or None,
            album=data.get("album") or None,
            year=str(year) if year not in (None, "") else None,
            image_url=data.get("image_url") or None,
            notes=data.get("notes") or None,
            details=dict(details) if isinstance(details, Mapping) and details else None,
        )


_ITEM_FIELDS = frozenset(MediaItem.__dataclass_fields__)  # type: ignore[attr-defined]
_OPTIONAL_FIELDS: tuple[str, ...] = ("artist", "album", "year", "image_url", "notes", "details")


@dataclass(slots=True, frozen=True)
class TierDefinition:
    """A labelled, colored row of the board."""

    id: str
    label: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "color": self.color}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TierDefinition":
        return cls(
            id=str(payload["id"]),
            label=str(payload.get("label", DEFAULT_TIER_LABEL)),
            color=str(payload.get("color") or "neutral"),
        )


@dataclass(slots=True, frozen=True)
class Board:
    """Immutable snapshot of a tier board.

    ``items`` maps tier id to the ordered items of that tier; ``item_lookup``
    is derived from it and maps item id back to its tier.
    """

    title: str = DEFAULT_TITLE
    tiers: tuple[TierDefinition, ...] = ()
    items: Mapping[str, tuple[MediaItem, ...]] = field(default_factory=dict)
    category: str = DEFAULT_CATEGORY
    item_lookup: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lookup: dict[str, str] = {}
        for tier_id, tier_items in self.items.items():
            for item in tier_items:
                lookup.setdefault(item.id, tier_id)
        object.__setattr__(self, "item_lookup", lookup)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def tier_ids(self) -> list[str]:
        return [tier.id for tier in self.tiers]

    def has_tier(self, tier_id: str) -> bool:
        return any(tier.id == tier_id for tier in self.tiers)

    def get_tier(self, tier_id: str) -> TierDefinition | None:
        for tier in self.tiers:
            if tier.id == tier_id:
                return tier
        return None

    def items_in(self, tier_id: str) -> tuple[MediaItem, ...]:
        return tuple(self.items.get(tier_id, ()))

    def container_of(self, item_id: str) -> str | None:
        """Tier id holding ``item_id``, if any."""

        return self.item_lookup.get(item_id)

    def get_item(self, item_id: str) -> MediaItem | None:
        tier_id = self.container_of(item_id)
        if tier_id is None:
            return None
        for item in self.items.get(tier_id, ()):
            if item.id == item_id:
                return item
        return None

    def iter_items(self) -> Iterator[MediaItem]:
        for tier in self.tiers:
            yield from self.items.get(tier.id, ())

    def all_items(self) -> list[MediaItem]:
        return list(self.iter_items())

    @property
    def item_count(self) -> int:
        return sum(len(self.items.get(tier.id, ())) for tier in self.tiers)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "category": self.category,
            "tiers": [tier.to_dict() for tier in self.tiers],
            "items": {
                tier_id: [item.to_dict() for item in tier_items]
                for tier_id, tier_items in self.items.items()
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Board":
        """Rebuild a board from :meth:`to_dict` output.

        Tiers without an item list get an empty one; item lists for unknown
        tiers are dropped.
        """

        tiers = tuple(TierDefinition.from_dict(entry) for entry in payload.get("tiers") or ())
        raw_items = payload.get("items") or {}
        if not isinstance(raw_items, Mapping):
            raise ValueError("Board items must be a mapping of tier id to item lists")
        items: dict[str, tuple[MediaItem, ...]] = {}
        seen: set[str] = set()
        for tier in tiers:
            entries = []
            for raw in raw_items.get(tier.id) or ():
                item = raw if isinstance(raw, MediaItem) else MediaItem.from_dict(raw)
                if item.id in seen:
                    continue
                seen.add(item.id)
                entries.append(item)
            items[tier.id] = tuple(entries)
        return cls(
            title=str(payload.get("title") or DEFAULT_TITLE),
            tiers=tiers,
            items=items,
            category=str(payload.get("category") or DEFAULT_CATEGORY),
        )


_DEFAULT_TIERS: tuple[tuple[str, str, str], ...] = (
    ("tier-1", "S", "red"),
    ("tier-2", "A", "orange"),
    ("tier-3", "B", "amber"),
    ("tier-4", "C", "green"),
    ("tier-5", "D", "blue"),
    ("tier-6", "Unranked", "neutral"),
)


def default_board(*, title: str = DEFAULT_TITLE, category: str = DEFAULT_CATEGORY) -> Board:
    """Return the empty six-tier board used for new and cleared boards."""

    tiers = tuple(TierDefinition(id=tier_id, label=label, color=color) for tier_id, label, color in _DEFAULT_TIERS)
    return Board(
        title=title,
        tiers=tiers,
        items={tier.id: () for tier in tiers},
        category=category,
    )
