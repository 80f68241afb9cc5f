"""Tests for the debounced, cached search controller."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Sequence

import pytest

from tierboard.errors import CatalogError
from tierboard.media.registry import MediaRegistry
from tierboard.search.controller import SearchController
from tierboard.search.filters import ArtistSelection, SearchFilters
from tierboard.services.catalog import SearchPage
from tierboard.services.storage import search_params_key

from helpers import make_item


class _FakeCatalog:
    def __init__(self, *, total_pages: int = 1) -> None:
        self.total_pages = total_pages
        self.calls: list[dict[str, str]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.error: Exception | None = None

    async def search(self, params: Sequence[tuple[str, str]]) -> SearchPage:
        query = dict(params)
        self.calls.append(query)
        text = query.get("query", "")
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        page = int(query["page"])
        return SearchPage(results=(make_item(f"{text}-{page}"),), page=page, total_pages=self.total_pages)

    def queries(self) -> list[tuple[str, str]]:
        return [(call.get("query", ""), call["page"]) for call in self.calls]


@pytest.mark.asyncio
async def test_search_now_issues_exactly_one_request(fast_settings) -> None:
    catalog = _FakeCatalog()
    controller = SearchController("album", catalog, MediaRegistry(), settings=fast_settings)

    controller.set_query("thriller")
    controller.search_now()
    state = await controller.refresh()
    await asyncio.sleep(fast_settings.search_debounce * 2)

    assert catalog.queries() == [("thriller", "1")]
    assert [item.id for item in state.results] == ["thriller-1"]
    assert state.is_loading is False


@pytest.mark.asyncio
async def test_typing_is_debounced_to_the_last_value(fast_settings) -> None:
    catalog = _FakeCatalog()
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)

    for text in ("t", "th", "thr"):
        controller.set_query(text)
    assert controller.filters.query == "thr"
    assert catalog.calls == []

    await asyncio.sleep(fast_settings.search_debounce * 3)
    state = await controller.refresh()

    assert catalog.queries() == [("thr", "1")]
    assert state.results[0].id == "thr-1"


@pytest.mark.asyncio
async def test_no_filters_means_no_request(fast_settings) -> None:
    catalog = _FakeCatalog()
    controller = SearchController("artist", catalog, MediaRegistry(), settings=fast_settings)
    states = []
    controller.add_listener(states.append)

    await controller.start()

    assert catalog.calls == []
    assert controller.current_request is None
    assert states[-1].results == ()


@pytest.mark.asyncio
async def test_next_page_is_prefetched_and_served_from_cache(fast_settings) -> None:
    catalog = _FakeCatalog(total_pages=3)
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)

    controller.set_filters(SearchFilters(query="x"))
    state = await controller.refresh()
    await asyncio.sleep(0.01)

    assert state.has_more is True
    assert catalog.queries() == [("x", "1"), ("x", "2")]

    controller.next_page()

    assert controller.state.page == 2
    assert controller.state.is_loading is False
    assert controller.state.results[0].id == "x-2"
    await asyncio.sleep(0.01)
    assert catalog.queries() == [("x", "1"), ("x", "2"), ("x", "3")]


@pytest.mark.asyncio
async def test_loading_a_new_page_keeps_previous_results(fast_settings) -> None:
    catalog = _FakeCatalog(total_pages=1)
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)
    controller.set_filters(SearchFilters(query="x"))
    await controller.refresh()

    controller.set_page(2)

    assert controller.state.is_loading is True
    assert controller.state.results[0].id == "x-1"
    state = await controller.refresh()
    assert state.results[0].id == "x-2"


@pytest.mark.asyncio
async def test_filter_change_resets_page(fast_settings) -> None:
    controller = SearchController("album", _FakeCatalog(), MediaRegistry(), settings=fast_settings)
    controller.set_filters(SearchFilters(query="x", page=3))

    controller.set_album_secondary_types(["Live"])

    assert controller.filters.page == 1
    assert controller.current_request.page == 1
    await controller.aclose()


@pytest.mark.asyncio
async def test_failed_search_sets_error_until_dismissed(fast_settings, captured_events) -> None:
    catalog = _FakeCatalog()
    catalog.error = CatalogError(500, "boom")
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)

    controller.set_filters(SearchFilters(query="x"))
    state = await controller.refresh()

    assert state.error is catalog.error
    assert state.is_loading is False
    assert any(event["event"] == "search.error" for event in captured_events)

    controller.dismiss_error()
    assert controller.state.error is None


@pytest.mark.asyncio
async def test_superseded_response_is_cached_but_not_shown(fast_settings) -> None:
    catalog = _FakeCatalog()
    catalog.gates["slow"] = asyncio.Event()
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)

    controller.set_filters(SearchFilters(query="slow"))
    await asyncio.sleep(0)
    controller.set_filters(SearchFilters(query="fast"))
    state = await controller.refresh()
    catalog.gates["slow"].set()
    await asyncio.sleep(0.01)

    assert state.results[0].id == "fast-1"
    assert controller.state.results[0].id == "fast-1"

    controller.set_filters(SearchFilters(query="slow"))

    assert controller.state.results[0].id == "slow-1"
    assert catalog.queries().count(("slow", "1")) == 1


@pytest.mark.asyncio
async def test_cached_pages_are_revalidated_after_ttl(fast_settings) -> None:
    now = [0.0]
    catalog = _FakeCatalog()
    controller = SearchController(
        "song", catalog, MediaRegistry(), settings=fast_settings, clock=lambda: now[0]
    )

    controller.set_filters(SearchFilters(query="x"))
    await controller.refresh()
    controller.set_filters(SearchFilters(query="y"))
    await controller.refresh()
    controller.set_filters(SearchFilters(query="x"))
    await controller.refresh()
    assert catalog.queries() == [("x", "1"), ("y", "1")]

    now[0] += fast_settings.search_cache_ttl + 1
    controller.set_filters(SearchFilters(query="y"))
    assert controller.state.results[0].id == "y-1"
    await controller.refresh()

    assert catalog.queries() == [("x", "1"), ("y", "1"), ("y", "1")]


@pytest.mark.asyncio
async def test_results_show_registry_versions(fast_settings) -> None:
    registry = MediaRegistry()
    registry.register(make_item("x-1", details={"label": "Epic"}))
    controller = SearchController("song", _FakeCatalog(), registry, settings=fast_settings)

    controller.set_filters(SearchFilters(query="x"))
    state = await controller.refresh()

    assert state.results[0].details == {"label": "Epic"}


@pytest.mark.asyncio
async def test_flag_change_triggers_new_request(fast_settings) -> None:
    catalog = _FakeCatalog()
    controller = SearchController("song", catalog, MediaRegistry(), settings=fast_settings)
    controller.set_filters(SearchFilters(query="x", page=2))
    await controller.refresh()

    controller.set_fuzzy(False)
    await controller.refresh()

    assert controller.fuzzy is False
    assert controller.filters.page == 1
    assert catalog.calls[-1]["fuzzy"] == "false"


@pytest.mark.asyncio
async def test_filters_are_persisted_per_context(memory_storage, fast_settings) -> None:
    catalog = _FakeCatalog()
    controller = SearchController(
        "album", catalog, MediaRegistry(), settings=fast_settings, storage=memory_storage, context="board-1"
    )
    await controller.start()

    controller.set_selected_artist(ArtistSelection(id="mj", name="Michael Jackson"))
    await controller.aclose()

    stored = memory_storage.read(search_params_key("board-1", "album"))
    assert stored["selectedArtist"] == {"id": "mj", "name": "Michael Jackson"}

    restored = SearchController(
        "album", catalog, MediaRegistry(), settings=fast_settings, storage=memory_storage, context="board-1"
    )
    await restored.start()

    assert restored.filters.selected_artist == ArtistSelection(id="mj", name="Michael Jackson")
    assert restored.current_request.artist_id == "mj"
    await restored.aclose()


@pytest.mark.asyncio
async def test_reset_restores_defaults(fast_settings) -> None:
    controller = SearchController("album", _FakeCatalog(), MediaRegistry(), settings=fast_settings)
    controller.set_filters(SearchFilters(query="x", min_year="1990"))

    controller.reset()

    assert controller.filters == SearchFilters()
    await controller.aclose()


@pytest.mark.asyncio
async def test_page_cache_drops_oldest_entries_past_limit(fast_settings) -> None:
    catalog = _FakeCatalog()
    settings = replace(fast_settings, search_cache_max_entries=5)
    controller = SearchController("song", catalog, MediaRegistry(), settings=settings)

    for index in range(12):
        controller.set_filters(SearchFilters(query=f"q{index}"))
        await controller.refresh()

    assert controller.cached_pages == 5
    controller.set_filters(SearchFilters(query="q11"))
    await controller.refresh()
    assert catalog.queries().count(("q11", "1")) == 1

    controller.set_filters(SearchFilters(query="q0"))
    await controller.refresh()
    assert catalog.queries().count(("q0", "1")) == 2
    assert controller.cached_pages == 5
