"""Search filter state and canonical request construction."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping
from urllib.parse import urlencode

from ..board.model import MediaType

__all__ = [
    "ArtistSelection",
    "DEFAULT_ALBUM_PRIMARY_TYPES",
    "SearchFilters",
    "SearchRequest",
    "build_request",
    "normalize_query",
]

DEFAULT_ALBUM_PRIMARY_TYPES: tuple[str, ...] = ("Album", "EP")

# Artist selection narrows album and song searches only.
_ARTIST_SCOPED = frozenset({MediaType.ALBUM, MediaType.SONG})


def normalize_query(value: str) -> str:
    """Drop leading whitespace; trailing spaces survive while the user types."""

    return (value or "").lstrip()


def _normalize_values(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted({str(value).strip() for value in values if str(value).strip()}))


@dataclass(slots=True, frozen=True)
class ArtistSelection:
    id: str
    name: str
    image_url: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.image_url:
            payload["imageUrl"] = self.image_url
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ArtistSelection":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or ""),
            image_url=payload.get("imageUrl") or None,
        )


@dataclass(slots=True, frozen=True)
class SearchFilters:
    """User-facing filter state of one search context, as persisted."""

    query: str = ""
    selected_artist: ArtistSelection | None = None
    min_year: str = ""
    max_year: str = ""
    album_primary_types: tuple[str, ...] = DEFAULT_ALBUM_PRIMARY_TYPES
    album_secondary_types: tuple[str, ...] = ()
    page: int = 1

    def with_changes(self, **changes: Any) -> "SearchFilters":
        """Apply filter changes; any change other than ``page`` resets to page 1."""

        if "query" in changes:
            changes["query"] = normalize_query(changes["query"])
        for name in ("album_primary_types", "album_secondary_types"):
            if name in changes:
                changes[name] = tuple(changes[name])
        if "page" not in changes:
            changes["page"] = 1
        updated = replace(self, **changes)
        return self if updated == self else updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "selectedArtist": self.selected_artist.to_dict() if self.selected_artist else None,
            "minYear": self.min_year,
            "maxYear": self.max_year,
            "albumPrimaryTypes": list(self.album_primary_types),
            "albumSecondaryTypes": list(self.album_secondary_types),
            "page": self.page,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SearchFilters":
        artist = payload.get("selectedArtist")
        primary = payload.get("albumPrimaryTypes")
        try:
            page = max(1, int(payload.get("page") or 1))
        except (TypeError, ValueError):
            page = 1
        return cls(
            query=normalize_query(str(payload.get("query") or "")),
            selected_artist=ArtistSelection.from_dict(artist) if isinstance(artist, Mapping) else None,
            min_year=str(payload.get("minYear") or ""),
            max_year=str(payload.get("maxYear") or ""),
            album_primary_types=tuple(primary) if primary is not None else DEFAULT_ALBUM_PRIMARY_TYPES,
            album_secondary_types=tuple(payload.get("albumSecondaryTypes") or ()),
            page=page,
        )


@dataclass(slots=True, frozen=True)
class SearchRequest:
    """Canonical, order-independent description of one catalog search page."""

    media_type: MediaType
    page: int = 1
    query: str = ""
    artist_id: str | None = None
    min_year: str = ""
    max_year: str = ""
    album_primary_types: tuple[str, ...] = ()
    album_secondary_types: tuple[str, ...] = ()
    fuzzy: bool = True
    wildcard: bool = True

    @property
    def has_filters(self) -> bool:
        return bool(
            self.query
            or self.artist_id
            or self.min_year
            or self.max_year
            or self.album_primary_types
            or self.album_secondary_types
        )

    def params(self) -> list[tuple[str, str]]:
        """Query parameters sorted by name, then value; empty values are skipped."""

        pairs: list[tuple[str, str]] = [
            ("type", self.media_type.value),
            ("page", str(self.page)),
            ("fuzzy", "true" if self.fuzzy else "false"),
            ("wildcard", "true" if self.wildcard else "false"),
        ]
        if self.query:
            pairs.append(("query", self.query))
        if self.artist_id:
            pairs.append(("artistId", self.artist_id))
        if self.min_year:
            pairs.append(("minYear", self.min_year))
        if self.max_year:
            pairs.append(("maxYear", self.max_year))
        pairs.extend(("albumPrimaryTypes", value) for value in self.album_primary_types)
        pairs.extend(("albumSecondaryTypes", value) for value in self.album_secondary_types)
        return sorted(pairs)

    @property
    def key(self) -> str:
        return urlencode(self.params())

    @property
    def filter_key(self) -> str:
        """Key of the filter set regardless of page."""

        return replace(self, page=1).key

    def with_page(self, page: int) -> "SearchRequest":
        return replace(self, page=max(1, page))


def build_request(
    media_type: MediaType | str,
    filters: SearchFilters,
    *,
    fuzzy: bool = True,
    wildcard: bool = True,
) -> SearchRequest | None:
    """Fold ``filters`` into a :class:`SearchRequest`; ``None`` when nothing is set."""

    kind = MediaType.coerce(media_type)
    is_album = kind is MediaType.ALBUM
    artist = filters.selected_artist if kind in _ARTIST_SCOPED else None
    request = SearchRequest(
        media_type=kind,
        page=max(1, filters.page),
        query=filters.query.strip(),
        artist_id=artist.id if artist else None,
        min_year=filters.min_year.strip(),
        max_year=filters.max_year.strip(),
        album_primary_types=_normalize_values(filters.album_primary_types) if is_album else (),
        album_secondary_types=_normalize_values(filters.album_secondary_types) if is_album else (),
        fuzzy=fuzzy,
        wildcard=wildcard,
    )
    if not request.has_filters:
        return None
    return request
