"""Search controller: debounced filters, canonical cache and page prefetch."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Protocol, Sequence

from ..board.model import MediaItem, MediaType
from ..media.registry import MediaRegistry
from ..services import telemetry
from ..services.catalog import SearchPage
from ..services.persistence import PersistenceSync
from ..services.settings import Settings
from ..services.storage import StorageBackend, search_params_key
from ..utils.debounce import Debouncer
from .filters import ArtistSelection, SearchFilters, SearchRequest, build_request

__all__ = ["SearchController", "SearchState", "CatalogSearch"]

LOGGER = logging.getLogger(__name__)

_TEXT_FIELDS = ("query", "min_year", "max_year")


class CatalogSearch(Protocol):
    async def search(self, params: Sequence[tuple[str, str]]) -> SearchPage:
        ...


@dataclass(slots=True, frozen=True)
class SearchState:
    """Snapshot of what a search view should display."""

    results: tuple[MediaItem, ...] = ()
    page: int = 1
    total_pages: int = 0
    is_loading: bool = False
    error: BaseException | None = None
    request: SearchRequest | None = None

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


@dataclass(slots=True)
class _CacheEntry:
    page: SearchPage
    fetched_at: float


class SearchController:
    """Owns the filters of one search context and keeps results in step.

    Text fields (query and year bounds) are debounced before they reach the
    effective request; every other filter applies immediately. Responses are
    cached by canonical request key and revalidated after ``cache_ttl``.
    A response whose key no longer matches the current request is cached but
    never shown.
    """

    def __init__(
        self,
        media_type: MediaType | str,
        catalog: CatalogSearch,
        registry: MediaRegistry,
        *,
        settings: Settings | None = None,
        storage: StorageBackend | None = None,
        context: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or Settings()
        self._media_type = MediaType.coerce(media_type)
        self._catalog = catalog
        self._registry = registry
        self._clock = clock
        self._cache_ttl = settings.search_cache_ttl
        self._cache_max_entries = max(1, settings.search_cache_max_entries)
        self._fuzzy = settings.default_search_flags.fuzzy
        self._wildcard = settings.default_search_flags.wildcard
        self._filters = SearchFilters()
        self._effective = SearchFilters()
        self._state = SearchState()
        self._current_key: str | None = None
        self._cache: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[SearchPage]] = {}
        self._listeners: list[Callable[[SearchState], None]] = []
        self._debouncer = Debouncer(self._apply_text_fields, settings.search_debounce, name="search-text")
        self._sync: PersistenceSync[SearchFilters] | None = None
        if storage is not None:
            self._sync = PersistenceSync(
                storage,
                search_params_key(context, self._media_type.value),
                defaults=SearchFilters().to_dict(),
                on_hydrate=self._on_hydrate,
                encode=SearchFilters.to_dict,
                decode=SearchFilters.from_dict,
                delay=settings.persistence_delay,
            )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def media_type(self) -> MediaType:
        return self._media_type

    @property
    def filters(self) -> SearchFilters:
        """Filters as typed, including text not yet folded into the request."""

        return self._filters

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def current_request(self) -> SearchRequest | None:
        return build_request(self._media_type, self._effective, fuzzy=self._fuzzy, wildcard=self._wildcard)

    @property
    def fuzzy(self) -> bool:
        return self._fuzzy

    @property
    def wildcard(self) -> bool:
        return self._wildcard

    @property
    def cached_pages(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Hydrate persisted filters (when storage is configured) and search."""

        if self._sync is not None:
            await self._sync.start()
        self._refresh()

    async def aclose(self) -> None:
        self._debouncer.cancel()
        if self._sync is not None:
            await self._sync.aclose()
        pending = list(self._inflight.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def add_listener(self, listener: Callable[[SearchState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Filter setters
    # ------------------------------------------------------------------
    def set_query(self, value: str) -> None:
        self._set_text(query=value)

    def set_min_year(self, value: str) -> None:
        self._set_text(min_year=value)

    def set_max_year(self, value: str) -> None:
        self._set_text(max_year=value)

    def set_selected_artist(self, artist: ArtistSelection | None) -> None:
        self._set_immediate(selected_artist=artist)

    def set_album_primary_types(self, values: Sequence[str]) -> None:
        self._set_immediate(album_primary_types=tuple(values))

    def set_album_secondary_types(self, values: Sequence[str]) -> None:
        self._set_immediate(album_secondary_types=tuple(values))

    def set_page(self, page: int) -> None:
        self._set_immediate(page=max(1, int(page)))

    def next_page(self) -> None:
        self.set_page(self._filters.page + 1)

    def previous_page(self) -> None:
        self.set_page(self._filters.page - 1)

    def set_fuzzy(self, enabled: bool) -> None:
        self._set_flags(fuzzy=bool(enabled))

    def set_wildcard(self, enabled: bool) -> None:
        self._set_flags(wildcard=bool(enabled))

    def set_filters(self, filters: SearchFilters) -> None:
        """Replace every filter at once, bypassing the text debounce."""

        self._debouncer.cancel()
        self._filters = filters
        self._effective = filters
        self._persist()
        self._refresh()

    def reset(self) -> None:
        """Restore default filters immediately, discarding pending text."""

        self._debouncer.cancel()
        self._filters = SearchFilters()
        self._effective = SearchFilters()
        self._persist()
        self._refresh()

    def search_now(self) -> None:
        """Fold pending text into the request immediately (e.g. on Enter)."""

        if not self._debouncer.flush():
            self._refresh()

    async def refresh(self) -> SearchState:
        """Flush pending text and wait for the current request to settle."""

        self.search_now()
        key = self._current_key
        task = self._inflight.get(key) if key else None
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
            # Let the completion callback publish before returning.
            await asyncio.sleep(0)
        return self._state

    def dismiss_error(self) -> None:
        if self._state.error is not None:
            self._publish(replace(self._state, error=None))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set_text(self, **changes: Any) -> None:
        updated = self._filters.with_changes(**changes)
        if updated is self._filters:
            return
        self._filters = updated
        self._persist()
        self._debouncer.schedule()

    def _set_immediate(self, **changes: Any) -> None:
        updated = self._filters.with_changes(**changes)
        if updated is self._filters:
            return
        self._filters = updated
        text_state = {name: getattr(self._effective, name) for name in _TEXT_FIELDS}
        self._effective = replace(updated, **text_state)
        self._persist()
        self._refresh()

    def _set_flags(self, **flags: bool) -> None:
        fuzzy = flags.get("fuzzy", self._fuzzy)
        wildcard = flags.get("wildcard", self._wildcard)
        if (fuzzy, wildcard) == (self._fuzzy, self._wildcard):
            return
        self._fuzzy, self._wildcard = fuzzy, wildcard
        if self._filters.page != 1:
            self._set_immediate(page=1)
        else:
            self._refresh()

    def _apply_text_fields(self) -> None:
        text_state = {name: getattr(self._filters, name) for name in _TEXT_FIELDS}
        self._effective = replace(self._effective, page=self._filters.page, **text_state)
        self._refresh()

    def _on_hydrate(self, filters: SearchFilters) -> None:
        self._filters = filters
        self._effective = filters

    def _persist(self) -> None:
        if self._sync is not None:
            self._sync.notify(self._filters)

    def _refresh(self) -> None:
        request = self.current_request
        if request is None:
            self._current_key = None
            self._publish(SearchState(page=self._effective.page))
            return
        key = request.key
        entry = self._cache.get(key)
        if key == self._current_key:
            if self._state.is_loading or (entry is not None and self._is_fresh(entry)):
                return
        self._current_key = key
        if entry is not None:
            self._cache.move_to_end(key)
            self._show_page(request, entry.page)
            if self._is_fresh(entry):
                self._prefetch_next(request, entry.page)
                return
            LOGGER.debug("Revalidating stale search results for %s", key)
            self._start_fetch(request, show=True)
            return
        previous = self._state
        keep_results = previous.request is not None and previous.request.filter_key == request.filter_key
        self._publish(
            SearchState(
                results=previous.results if keep_results else (),
                page=request.page,
                total_pages=previous.total_pages if keep_results else 0,
                is_loading=True,
                request=request,
            )
        )
        self._start_fetch(request, show=True)

    def _is_fresh(self, entry: _CacheEntry) -> bool:
        return (self._clock() - entry.fetched_at) < self._cache_ttl

    def _start_fetch(self, request: SearchRequest, *, show: bool) -> asyncio.Task[SearchPage]:
        key = request.key
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(request))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, _key=key: self._inflight.pop(_key, None))
        if show:
            task.add_done_callback(lambda done, _request=request: self._on_fetched(_request, done))
        return task

    async def _fetch(self, request: SearchRequest) -> SearchPage:
        LOGGER.debug("Fetching search page %s", request.key)
        page = await self._catalog.search(request.params())
        self._store_page(request.key, page)
        return page

    def _store_page(self, key: str, page: SearchPage) -> None:
        self._cache[key] = _CacheEntry(page=page, fetched_at=self._clock())
        self._cache.move_to_end(key)
        evicted = 0
        while len(self._cache) > self._cache_max_entries:
            self._cache.popitem(last=False)
            evicted += 1
        if evicted:
            LOGGER.debug("Evicted %d cached search page(s) (%d remain)", evicted, len(self._cache))

    def _on_fetched(self, request: SearchRequest, task: asyncio.Task[SearchPage]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if request.key != self._current_key:
            if exc is None:
                LOGGER.debug("Discarding superseded search response for %s", request.key)
            return
        if exc is not None:
            LOGGER.warning("Search for %s failed: %s", request.key, exc)
            telemetry.emit("search.error", {"key": request.key, "error": str(exc)})
            self._publish(replace(self._state, is_loading=False, error=exc))
            return
        page = task.result()
        self._show_page(request, page)
        self._prefetch_next(request, page)

    def _show_page(self, request: SearchRequest, page: SearchPage) -> None:
        self._registry.register_many(page.results)
        results = tuple(self._registry.resolve(item) for item in page.results)
        self._publish(
            SearchState(
                results=results,
                page=page.page,
                total_pages=page.total_pages,
                is_loading=False,
                error=None,
                request=request,
            )
        )

    def _prefetch_next(self, request: SearchRequest, page: SearchPage) -> None:
        if not page.has_more:
            return
        next_request = request.with_page(request.page + 1)
        entry = self._cache.get(next_request.key)
        if (entry is not None and self._is_fresh(entry)) or next_request.key in self._inflight:
            return
        task = self._start_fetch(next_request, show=False)
        task.add_done_callback(_log_prefetch_failure)

    def _publish(self, state: SearchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Search listener %s failed", listener)


def _log_prefetch_failure(task: asyncio.Task[SearchPage]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.debug("Prefetch failed: %s", exc)
