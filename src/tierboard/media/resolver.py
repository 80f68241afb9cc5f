"""Reconcile board items with the registry and fetch missing details."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Mapping

from ..board.diff import changed_fields
from ..board.model import Board, MediaItem, MediaType
from ..services import telemetry
from .registry import MediaRegistry

__all__ = ["MediaResolver", "Resolution", "DetailsFetcher", "UpdateCallback", "resolve_board"]

LOGGER = logging.getLogger(__name__)

DetailsFetcher = Callable[[str, MediaType], Awaitable[Mapping[str, Any]]]
UpdateCallback = Callable[[str, dict[str, Any]], None]


@dataclass(slots=True, frozen=True)
class Resolution:
    """Outcome of resolving one board item."""

    item: MediaItem
    enriched: bool
    fetched: bool = False
    error: BaseException | None = None


def _registry_updates(item: MediaItem, cached: MediaItem) -> dict[str, Any]:
    payload = cached.to_dict()
    payload.pop("id", None)
    return changed_fields(item, payload, empty_as_missing=True)


class MediaResolver:
    """Decides whether an item needs enrichment and reconciles the result.

    The registry copy wins when it already has details. Otherwise a detail
    fetch is issued; concurrent requests for the same item share one task.
    """

    def __init__(
        self,
        registry: MediaRegistry,
        fetch_details: DetailsFetcher | None = None,
        *,
        persist: bool = True,
    ) -> None:
        self._registry = registry
        self._fetch_details = fetch_details
        self._persist = persist
        self._inflight: dict[tuple[str, str], asyncio.Task[Mapping[str, Any]]] = {}
        self._reported: dict[str, MediaItem] = {}

    @property
    def registry(self) -> MediaRegistry:
        return self._registry

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    @property
    def reported_count(self) -> int:
        return len(self._reported)

    def needs_enrichment(self, item: MediaItem) -> bool:
        if item.has_details:
            return False
        cached = self._registry.get(item.id)
        return not (cached is not None and cached.has_details)

    async def resolve(
        self,
        item: MediaItem,
        *,
        on_update: UpdateCallback | None = None,
        enabled: bool = True,
    ) -> Resolution:
        cached = self._registry.get(item.id)
        resolved = cached or item
        if cached is not None:
            self._report_cached(item, cached, on_update)

        fetch_details = self._fetch_details
        if not (enabled and fetch_details is not None and self.needs_enrichment(item)):
            enriched = item.has_details or (cached is not None and cached.has_details)
            return Resolution(item=resolved, enriched=enriched)

        try:
            details = await self._fetch_shared(item, fetch_details)
        except Exception as exc:
            LOGGER.warning("Detail fetch for %s (%s) failed: %s", item.id, item.type.value, exc)
            telemetry.emit(
                "enrichment.failed",
                {"item_id": item.id, "type": item.type.value, "error": str(exc)},
            )
            return Resolution(item=resolved, enriched=False, error=exc)

        updates: dict[str, Any] = {
            "details": dict(details),
            "image_url": details.get("imageUrl") or item.image_url,
        }
        changes = changed_fields(item, updates)
        merged = item.merged(changes) if changes else item
        if self._persist:
            self._registry.register(merged)
        if changes and on_update is not None:
            on_update(item.id, changes)
        return Resolution(item=self._registry.get(item.id) or merged, enriched=True, fetched=True)

    def _report_cached(self, item: MediaItem, cached: MediaItem, on_update: UpdateCallback | None) -> None:
        if self._reported.get(item.id) is cached:
            return
        updates = _registry_updates(item, cached)
        if not updates:
            return
        self._reported[item.id] = cached
        self._prune_reported()
        if on_update is not None:
            on_update(item.id, updates)

    def _prune_reported(self) -> None:
        # Entries for items the registry has since evicted are dropped.
        if len(self._reported) <= len(self._registry):
            return
        for item_id in [key for key in self._reported if key not in self._registry]:
            del self._reported[item_id]

    async def _fetch_shared(self, item: MediaItem, fetch_details: DetailsFetcher) -> Mapping[str, Any]:
        key = (item.id, item.type.value)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch_details(item.id, item.type))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, _key=key: self._inflight.pop(_key, None))
        else:
            LOGGER.debug("Joining in-flight detail fetch for %s", item.id)
        return await asyncio.shield(task)


def resolve_board(board: Board, registry: MediaRegistry) -> Board:
    """Copy of ``board`` whose items are the registry's best-known versions.

    Returns ``board`` itself when no item differs from its registry copy.
    """

    items: dict[str, tuple[MediaItem, ...]] = {}
    changed = False
    for tier_id, tier_items in board.items.items():
        resolved = []
        for item in tier_items:
            cached = registry.get(item.id)
            if cached is None:
                resolved.append(item)
                continue
            updates = _registry_updates(item, cached)
            merged = item.merged(updates) if updates else item
            changed = changed or merged is not item
            resolved.append(merged)
        items[tier_id] = tuple(resolved)
    if not changed:
        return board
    return replace(board, items=items)
