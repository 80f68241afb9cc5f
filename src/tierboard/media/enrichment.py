"""Bounded-concurrency background enrichment of board items."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..board.model import MediaItem
from .resolver import MediaResolver, Resolution, UpdateCallback

__all__ = ["BackgroundEnricher", "DEFAULT_ENRICHMENT_CONCURRENCY"]

LOGGER = logging.getLogger(__name__)

DEFAULT_ENRICHMENT_CONCURRENCY = 3


class BackgroundEnricher:
    """Resolve every item lacking details, at most ``concurrency`` at a time."""

    def __init__(self, resolver: MediaResolver, *, concurrency: int = DEFAULT_ENRICHMENT_CONCURRENCY) -> None:
        self._resolver = resolver
        self._concurrency = max(1, concurrency)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def pending(self, items: Iterable[MediaItem]) -> list[MediaItem]:
        seen: set[str] = set()
        pending: list[MediaItem] = []
        for item in items:
            if item.has_details or item.id in seen:
                continue
            seen.add(item.id)
            pending.append(item)
        return pending

    async def enrich(self, items: Iterable[MediaItem], on_update: UpdateCallback) -> list[Resolution]:
        """Run one scan. Failed items stay unenriched until the next scan."""

        pending = self.pending(items)
        if not pending:
            return []
        LOGGER.debug("Enriching %d item(s) with concurrency %d", len(pending), self._concurrency)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_with_semaphore(item: MediaItem) -> Resolution:
            async with semaphore:
                return await self._resolver.resolve(item, on_update=on_update)

        return list(await asyncio.gather(*(run_with_semaphore(item) for item in pending)))
