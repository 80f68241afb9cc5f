"""Linear undo/redo history over immutable snapshots."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Generic, TypeVar

__all__ = ["HistoryManager"]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class HistoryManager(Generic[T]):
    """Two bounded stacks of snapshots.

    ``past`` holds states captured before each recorded action (oldest first);
    ``future`` holds states undone since then (next redo first). Pushing after
    an undo discards ``future``.
    """

    def __init__(self, limit: int | None = 100) -> None:
        self._limit = limit if limit is None else max(1, int(limit))
        self._past: deque[T] = deque(maxlen=self._limit)
        self._future: deque[T] = deque(maxlen=self._limit)

    @property
    def past(self) -> tuple[T, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[T, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def push(self, snapshot: T) -> None:
        if self._limit is not None and len(self._past) == self._limit:
            LOGGER.debug("History limit %s reached; dropping oldest snapshot", self._limit)
        self._past.append(snapshot)
        self._future.clear()

    def undo(self, current: T, apply: Callable[[T], None]) -> bool:
        if not self._past:
            return False
        previous = self._past.pop()
        apply(previous)
        self._future.appendleft(current)
        return True

    def redo(self, current: T, apply: Callable[[T], None]) -> bool:
        if not self._future:
            return False
        following = self._future.popleft()
        apply(following)
        self._past.append(current)
        return True

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
