"""Registry holding the best-known copy of every media item seen this session."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Iterable, Iterator

from ..board.diff import changed_fields
from ..board.model import MediaItem
from ..services import telemetry

__all__ = ["MediaRegistry", "RegistryListener", "DEFAULT_MAX_ENTRIES", "DEFAULT_PRUNE_COUNT"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 2000
DEFAULT_PRUNE_COUNT = 200

RegistryListener = Callable[[list[MediaItem]], None]


def _update_payload(item: MediaItem) -> dict:
    payload = item.to_dict()
    payload.pop("id", None)
    return payload


class MediaRegistry:
    """id -> most complete known :class:`MediaItem`.

    A registration is applied only when it carries new information. Empty
    fields never overwrite populated ones, so a sparse search result cannot
    erase details fetched earlier. Shared by every board session and search
    controller of the process.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        prune_count: int = DEFAULT_PRUNE_COUNT,
    ) -> None:
        self._items: OrderedDict[str, MediaItem] = OrderedDict()
        self._max_entries = max(1, max_entries)
        self._prune_count = max(1, prune_count)
        self._listeners: list[RegistryListener] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[MediaItem]:
        return iter(list(self._items.values()))

    def get(self, item_id: str) -> MediaItem | None:
        return self._items.get(item_id)

    def resolve(self, item: MediaItem) -> MediaItem:
        """Registry copy of ``item`` when known, else ``item`` itself."""

        return self._items.get(item.id, item)

    def register(self, item: MediaItem) -> MediaItem | None:
        """Register one item; returns the stored copy when it changed."""

        changed = self.register_many([item])
        return changed[0] if changed else None

    def register_many(self, items: Iterable[MediaItem]) -> list[MediaItem]:
        changed: dict[str, MediaItem] = {}
        for item in items:
            if not item.id:
                continue
            existing = self._items.get(item.id)
            if existing is None:
                self._items[item.id] = item
                changed[item.id] = item
                continue
            updates = changed_fields(existing, _update_payload(item), empty_as_missing=True)
            if not updates:
                continue
            merged = existing.merged(updates)
            if merged is existing:
                continue
            self._items[item.id] = merged
            changed[item.id] = merged
        if changed:
            self._prune()
            self._notify(list(changed.values()))
        return list(changed.values())

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Call ``listener`` with each batch of changed items. Returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def clear(self) -> None:
        self._items.clear()

    def _prune(self) -> None:
        if len(self._items) <= self._max_entries:
            return
        removed = 0
        while self._items and removed < self._prune_count:
            self._items.popitem(last=False)
            removed += 1
        LOGGER.debug("Pruned %d registry entries (%d remain)", removed, len(self._items))
        telemetry.emit("registry.pruned", {"removed": removed, "remaining": len(self._items)})

    def _notify(self, items: list[MediaItem]) -> None:
        for listener in list(self._listeners):
            try:
                listener(items)
            except Exception:
                LOGGER.exception("Registry listener %s failed", listener)
