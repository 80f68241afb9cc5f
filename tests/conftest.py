"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Iterator

import pytest

from tierboard.services import telemetry
from tierboard.services.settings import Settings
from tierboard.services.storage import MemoryStorage


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Iterator[None]:
    telemetry.clear_event_listeners()
    yield
    telemetry.clear_event_listeners()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        persistence_delay=0.01,
        metadata_sync_delay=0.01,
        search_debounce=0.05,
        retry_wait_seconds=0.0,
    )


@pytest.fixture
def captured_events() -> Iterator[list[dict[str, Any]]]:
    events: list[dict[str, Any]] = []
    names = (
        "board.import.failed",
        "board.persist.failed",
        "board.hydrated",
        "persistence.hydrate.failed",
        "search.error",
        "search.fetch",
        "details.fetch",
        "enrichment.failed",
        "registry.pruned",
    )
    for name in names:
        telemetry.register_event_listener(name, events.append)
    yield events
