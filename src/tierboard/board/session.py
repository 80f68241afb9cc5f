"""One open board: reducer, undo history, persistence and metadata sync."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping

from ..errors import ImportFormatError
from ..media.enrichment import BackgroundEnricher
from ..media.registry import MediaRegistry
from ..media.resolver import Resolution, resolve_board
from ..services import telemetry
from ..services.board_index import BoardIndex
from ..services.persistence import PersistenceSync
from ..services.settings import Settings
from ..services.storage import StorageBackend, board_key
from ..utils.debounce import Debouncer
from .actions import Action, ReplaceState, UpdateItem
from .history import HistoryManager
from .io import generate_export_data, parse_import_data
from .model import Board, MediaItem, default_board
from .reducer import reduce_board

__all__ = ["BoardSession", "BoardListener"]

LOGGER = logging.getLogger(__name__)

BoardListener = Callable[[Board], None]


class BoardSession:
    """Owns the live :class:`Board` of one board id.

    Every dispatched action runs through the pure reducer. Actions that change
    the board push the previous snapshot onto the undo history (unless told
    otherwise), schedule a debounced persistence write and a debounced refresh
    of the board's dashboard metadata.
    """

    def __init__(
        self,
        board_id: str,
        storage: StorageBackend,
        registry: MediaRegistry,
        *,
        settings: Settings | None = None,
        board_index: BoardIndex | None = None,
        rng: random.Random | None = None,
    ) -> None:
        settings = settings or Settings()
        self._board_id = board_id
        self._registry = registry
        self._board_index = board_index
        self._rng = rng or random.Random()
        self._board = default_board()
        self._history: HistoryManager[Board] = HistoryManager(limit=settings.history_limit)
        self._listeners: list[BoardListener] = []
        self._in_gesture = False
        self._meta_tasks: set[asyncio.Task[bool]] = set()
        self._sync: PersistenceSync[Board] = PersistenceSync(
            storage,
            board_key(board_id),
            defaults=default_board().to_dict(),
            on_hydrate=self._on_hydrate,
            encode=Board.to_dict,
            decode=Board.from_dict,
            delay=settings.persistence_delay,
        )
        self._meta_debouncer = Debouncer(
            self._sync_metadata, settings.metadata_sync_delay, name=f"board-meta:{board_id}"
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def board_id(self) -> str:
        return self._board_id

    @property
    def board(self) -> Board:
        return self._board

    @property
    def registry(self) -> MediaRegistry:
        return self._registry

    @property
    def is_hydrated(self) -> bool:
        return self._sync.is_hydrated

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> HistoryManager[Board]:
        return self._history

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> bool:
        """Hydrate the stored board. Returns True when a stored record was found."""

        found = await self._sync.start()
        self._registry.register_many(self._board.iter_items())
        telemetry.emit(
            "board.hydrated",
            {"board_id": self._board_id, "restored": found, "item_count": self._board.item_count},
        )
        if self._board_index is not None:
            self._meta_debouncer.schedule()
        return found

    async def aclose(self) -> None:
        """Flush pending persistence and metadata work."""

        had_meta = self._meta_debouncer.cancel()
        if self._meta_tasks:
            await asyncio.gather(*self._meta_tasks, return_exceptions=True)
        if had_meta and self._board_index is not None and self.is_hydrated:
            await self._board_index.sync_board(self._board_id, self._board)
        await self._sync.aclose()

    def add_listener(self, listener: BoardListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def dispatch(self, action: Action, *, record_history: bool = True) -> bool:
        """Apply ``action``. Returns False when it left the board unchanged."""

        next_board = reduce_board(self._board, action, rng=self._rng)
        if next_board is self._board:
            return False
        if record_history and not self._in_gesture:
            self._history.push(self._board)
        self._commit(next_board)
        return True

    def begin_gesture(self) -> None:
        """Record one history entry for a multi-step interaction such as a drag."""

        if self._in_gesture:
            return
        self._history.push(self._board)
        self._in_gesture = True

    def end_gesture(self) -> None:
        self._in_gesture = False

    @contextmanager
    def gesture(self) -> Iterator["BoardSession"]:
        self.begin_gesture()
        try:
            yield self
        finally:
            self.end_gesture()

    def undo(self) -> bool:
        return self._history.undo(self._board, self._commit)

    def redo(self) -> bool:
        return self._history.redo(self._board, self._commit)

    def update_item(self, item_id: str, updates: Mapping[str, Any]) -> bool:
        """Merge background updates into an item without touching history."""

        return self.dispatch(UpdateItem(item_id=item_id, updates=dict(updates)), record_history=False)

    def import_json(self, text: str | bytes | Mapping[str, Any]) -> bool:
        """Replace the board with an imported document; False leaves it untouched."""

        try:
            imported = parse_import_data(text, fallback_title=self._board.title)
        except ImportFormatError as exc:
            LOGGER.warning("Import into board %s rejected: %s", self._board_id, exc)
            telemetry.emit("board.import.failed", {"board_id": self._board_id, **exc.to_dict()})
            return False
        self._registry.register_many(imported.iter_items())
        self.dispatch(ReplaceState(board=imported))
        LOGGER.info("Imported %d item(s) into board %s", imported.item_count, self._board_id)
        return True

    async def enrich(self, enricher: BackgroundEnricher) -> list[Resolution]:
        """Run one background enrichment scan over the current items."""

        return await enricher.enrich(self._board.iter_items(), self.update_item)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def export_data(self) -> Dict[str, Any]:
        return generate_export_data(self._board)

    def resolved_board(self) -> Board:
        """Board with each item replaced by the registry's best-known copy."""

        return resolve_board(self._board, self._registry)

    def locate(self, item_id: str) -> str | None:
        return self._board.container_of(item_id)

    def all_items(self) -> list[MediaItem]:
        return self._board.all_items()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_hydrate(self, board: Board) -> None:
        self._board = board
        self._notify()

    def _commit(self, board: Board) -> None:
        self._board = board
        self._sync.notify(board)
        if self._board_index is not None and self.is_hydrated:
            self._meta_debouncer.schedule()
        self._notify()

    def _sync_metadata(self) -> None:
        if self._board_index is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("Skipping metadata sync for board %s: no running event loop", self._board_id)
            return
        task = loop.create_task(self._board_index.sync_board(self._board_id, self._board))
        self._meta_tasks.add(task)
        task.add_done_callback(self._on_metadata_synced)

    def _on_metadata_synced(self, task: asyncio.Task[bool]) -> None:
        self._meta_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Metadata sync for board %s failed: %s", self._board_id, exc)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._board)
            except Exception:
                LOGGER.exception("Board listener %s failed", listener)
