"""Tests for bounded background enrichment."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from tierboard.board.model import MediaType
from tierboard.media.enrichment import BackgroundEnricher
from tierboard.media.registry import MediaRegistry
from tierboard.media.resolver import MediaResolver

from helpers import make_item


class _CountingFetcher:
    def __init__(self) -> None:
        self.active = 0
        self.max_active = 0
        self.calls: list[str] = []

    async def __call__(self, item_id: str, media_type: MediaType) -> dict[str, Any]:
        self.calls.append(item_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        return {"id": item_id}


@pytest.mark.asyncio
async def test_enrichment_respects_concurrency_limit() -> None:
    fetcher = _CountingFetcher()
    enricher = BackgroundEnricher(MediaResolver(MediaRegistry(), fetcher), concurrency=3)
    updated: list[str] = []

    results = await enricher.enrich(
        [make_item(f"i{n}") for n in range(10)],
        lambda item_id, changes: updated.append(item_id),
    )

    assert len(results) == 10
    assert len(fetcher.calls) == 10
    assert fetcher.max_active <= 3
    assert sorted(updated) == sorted(f"i{n}" for n in range(10))


def test_pending_skips_enriched_and_duplicate_items() -> None:
    enricher = BackgroundEnricher(MediaResolver(MediaRegistry()))

    pending = enricher.pending(
        [make_item("a1"), make_item("a1"), make_item("a2", details={"label": "Epic"}), make_item("a3")]
    )

    assert [item.id for item in pending] == ["a1", "a3"]


@pytest.mark.asyncio
async def test_nothing_pending_returns_no_results() -> None:
    fetcher = _CountingFetcher()
    enricher = BackgroundEnricher(MediaResolver(MediaRegistry(), fetcher))

    assert await enricher.enrich([make_item("a1", details={"x": 1})], lambda *_: None) == []
    assert fetcher.calls == []
