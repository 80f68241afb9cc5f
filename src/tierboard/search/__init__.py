"""Debounced, cached catalog search with per-context persisted filters."""

from .controller import SearchController, SearchState
from .filters import ArtistSelection, SearchFilters, SearchRequest, build_request

__all__ = [
    "ArtistSelection",
    "SearchController",
    "SearchFilters",
    "SearchRequest",
    "SearchState",
    "build_request",
]
